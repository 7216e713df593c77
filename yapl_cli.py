import asyncio
import sys
import traceback
from pathlib import Path

from yapl.yapl_runtime import Transpiler
from yapl.yapl_printer import Printer

USAGE = "usage: yapl [--emit] FILE"


def _report(e: BaseException, message: str):
    print(f"Error: {message}", file=sys.stderr)
    print("".join(traceback.format_exception(e)), file=sys.stderr, end="")


async def run_script_file(file_path: str, emit_only: bool = False):
    """Run (or with `emit_only`, just lower) a YAPL file and exit with appropriate status."""
    transpiler = Transpiler()
    p = Path(file_path)
    if not p.is_file():
        print(f"Error: file not found: {file_path}", file=sys.stderr)
        raise SystemExit(1)

    if emit_only:
        try:
            source = await transpiler.transpile_file(p)
        except Exception as e:
            _report(e, str(e))
            raise SystemExit(1)
        print(source, end="")
        return

    transpiler.source_dir = str(p.parent.resolve())
    result = await transpiler.handle_script(p.read_text(encoding="utf-8"), path=str(p))
    if result.status == 'error':
        for effect in result.side_effects:
            # The error message itself is reported below, with its traceback
            if effect.get('topics') == ['stderr'] and effect.get('message') != result.error_message:
                print(effect.get('message', ''), file=sys.stderr)
        _report(result.error, result.format_error())
        raise SystemExit(1)
    if result.value is not None:
        print(Printer().pformat(result.value))


async def main(argv=None):
    """Run the script file named on the command line."""
    args = list(sys.argv[1:] if argv is None else argv)
    emit_only = False
    if args and args[0] == "--emit":
        emit_only = True
        args = args[1:]
    if len(args) != 1 or args[0].startswith("-"):
        print(USAGE, file=sys.stderr)
        raise SystemExit(1)
    await run_script_file(args[0], emit_only=emit_only)


def cli():
    asyncio.run(main())


if __name__ == "__main__":
    cli()
