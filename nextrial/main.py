"""Entry point: cli | oneshot | health."""

import sys


def main():
    mode = "cli"
    if len(sys.argv) > 1:
        mode = sys.argv[1].lower()

    if mode == "cli":
        from nextrial.interfaces.cli import main as run_cli_main

        run_cli_main()

    elif mode == "oneshot":
        from nextrial.interfaces.oneshot import main as run_oneshot_main

        query_parts = sys.argv[2:]
        if query_parts:
            query = " ".join(query_parts).strip()
        else:
            query = sys.stdin.read().strip()
        sys.exit(run_oneshot_main(query=query))

    elif mode == "health":
        from nextrial.interfaces.oneshot import health_main

        sys.exit(health_main())

    else:
        print(f"Unknown mode: {mode}")
        print("Usage: python -m nextrial.main [cli|oneshot|health]")
        sys.exit(1)


if __name__ == "__main__":
    main()
