"""Usage: python -m xray_report analyze scan.png | python -m xray_report serve"""
import argparse
import sys

from xray_report.client import ClientError, ReportClient, render_report_text


def _analyze(args) -> int:
    client = ReportClient(base_url=args.base_url)
    try:
        report = client.analyze_file(
            args.file,
            interval=args.interval,
            completed_delay=0,
            max_attempts=args.max_attempts,
        )
    except ClientError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    print(render_report_text(report))
    return 0


def _serve(args) -> int:
    import uvicorn

    uvicorn.run("xray_report.main:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="xray-report")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("analyze", help="upload an image, wait, print the report")
    p.add_argument("file")
    p.add_argument("--base-url", default="http://127.0.0.1:8000")
    p.add_argument("--interval", type=float, default=2.0)
    p.add_argument("--max-attempts", type=int, default=None)
    p.set_defaults(func=_analyze)

    p = sub.add_parser("serve", help="run the API with uvicorn")
    p.add_argument("--host", default="127.0.0.1")
    p.add_argument("--port", type=int, default=8000)
    p.add_argument("--reload", action="store_true")
    p.set_defaults(func=_serve)

    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
