"""Command implementations for the forgeview CLI."""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

from .. import config as config_mod
from ..auth import load_token
from ..cache import ResponseCache, default_cache_root
from ..errors import ConfigError, ForgeError

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(debug: bool = False, log_dir: Optional[Path] = None) -> Optional[Path]:
    """Log to a file; the terminal belongs to curses while the UI runs."""
    log_dir = log_dir or default_cache_root()
    log_file = log_dir / "forgeview.log"
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        print(f"Warning: logging disabled ({e})", file=sys.stderr)
        logging.basicConfig(level=logging.CRITICAL, handlers=[logging.NullHandler()])
        return None
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
        filename=str(log_file),
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if debug else logging.WARNING)
    return log_file


def cmd_config(action: str, force: bool = False) -> int:
    path = config_mod.config_path()
    if action == "explain":
        print(config_mod.EXAMPLE_CONFIG, end="")
        return 0
    if action == "path":
        print(path)
        return 0
    if action == "init":
        try:
            written = config_mod.write_example_config(path, force=force)
        except ConfigError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        print(f"Config file written to {written}")
        return 0
    print(f"Error: unknown config action: {action}", file=sys.stderr)
    return 1


def cmd_run(debug: bool = False) -> int:
    """Resolve forge and token, then run the UI until the user quits."""
    from ..app import App
    from ..forge import create_forge
    from ..terminal import Terminal

    log_file = setup_logging(debug)
    try:
        config = config_mod.load_config()
        forge_config = config_mod.detect_forge(config)
        token = load_token(forge_config)
    except (ConfigError, ForgeError) as e:
        logger.error(f"Startup failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1

    logger.info(f"Starting forgeview on {forge_config.name} ({forge_config.host})")
    forge = create_forge(forge_config, token)
    cache = ResponseCache.for_forge(forge_config.name)

    async def run_app(terminal: Terminal):
        await App(forge, terminal, cache=cache).run()

    try:
        with Terminal() as terminal:
            asyncio.run(run_app(terminal))
    except KeyboardInterrupt:
        pass
    except Exception:
        logger.exception("forgeview crashed")
        where = f"; see {log_file}" if log_file else ""
        print(f"Error: forgeview crashed{where}", file=sys.stderr)
        return 1
    return 0
