import os
import sys
import time
from pathlib import Path

import click
import psutil

from ..shared.utils import format_duration_hms
from . import main as app_main

DEFAULT_PID_FILE = Path("data") / "chatrelay.pid"


class PidFile:
    def __init__(self, path: Path):
        self.path = path

    def read(self) -> int | None:
        try:
            return int(self.path.read_text(encoding="utf-8").strip())
        except (OSError, ValueError):
            return None

    def running_pid(self) -> int | None:
        """Return the recorded pid if that process is alive; drop stale files."""
        pid = self.read()
        if pid is not None and psutil.pid_exists(pid):
            return pid
        self.remove()
        return None

    def write(self, pid: int) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(str(pid), encoding="utf-8")

    def remove(self, *, owner: int | None = None) -> None:
        if owner is not None and self.read() != owner:
            return
        try:
            self.path.unlink(missing_ok=True)
        except OSError:
            return


@click.group(
    invoke_without_command=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.option(
    "--pid-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=DEFAULT_PID_FILE,
    show_default=True,
)
@click.pass_context
def app(ctx: click.Context, pid_file: Path) -> None:
    """Relay WeChat messages to an OpenAI-compatible model."""
    ctx.obj = PidFile(pid_file)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())
        ctx.exit(0)


@app.command()
@click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="config.yaml to use instead of $CONFIG_PATH.",
)
@click.pass_obj
def up(pid_file: PidFile, config_path: Path | None) -> None:
    """Run the bot in the foreground."""
    if pid := pid_file.running_pid():
        click.echo(f"chatrelay is already running (pid={pid})", err=True)
        raise click.exceptions.Exit(2)
    if config_path is not None:
        os.environ["CONFIG_PATH"] = str(config_path)
    pid = os.getpid()
    pid_file.write(pid)
    click.echo(f"chatrelay running (pid={pid}, pid_file={pid_file.path}); press Ctrl+C to stop")
    try:
        code = app_main.main()
    finally:
        pid_file.remove(owner=pid)
    raise click.exceptions.Exit(code)


@app.command()
@click.option("--timeout", default=10.0, show_default=True, help="Seconds to wait before killing.")
@click.pass_obj
def down(pid_file: PidFile, timeout: float) -> None:
    """Stop a running bot."""
    pid = pid_file.running_pid()
    if not pid:
        click.echo("chatrelay is not running", err=True)
        raise click.exceptions.Exit(2)
    try:
        proc = psutil.Process(pid)
        proc.terminate()
        try:
            proc.wait(timeout=timeout)
        except psutil.TimeoutExpired:
            proc.kill()
    except psutil.NoSuchProcess:
        pass
    except psutil.AccessDenied as e:
        click.echo(f"failed to stop chatrelay: {e}", err=True)
        raise click.exceptions.Exit(1) from e
    pid_file.remove()
    click.echo(f"chatrelay stopped (pid={pid})")


@app.command()
@click.pass_obj
def status(pid_file: PidFile) -> None:
    """Show whether the bot is running."""
    pid = pid_file.running_pid()
    if not pid:
        click.echo("stopped")
        raise click.exceptions.Exit(2)
    try:
        proc = psutil.Process(pid)
        rss_mb = proc.memory_info().rss / (1024 * 1024)
        uptime = format_duration_hms(time.time() - proc.create_time())
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        click.echo("stopped")
        raise click.exceptions.Exit(2) from None
    click.echo(f"running pid={pid} uptime={uptime} rss={rss_mb:.1f}MB")


def main() -> int:
    try:
        rv = app.main(prog_name="chatrelay", standalone_mode=False)
    except click.ClickException as e:
        e.show()
        return e.exit_code
    except click.Abort:
        click.echo("Aborted!", err=True)
        return 1
    return rv if isinstance(rv, int) else 0


if __name__ == "__main__":
    sys.exit(main())
