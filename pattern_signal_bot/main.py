from __future__ import annotations

import argparse
import asyncio
import logging

from .config import Config, load_config, validate_config
from .formatters import format_signal_json
from .runner import SignalRunner


def _setup_logging(level: str) -> None:
    lvl = getattr(logging, (level or "INFO").upper(), logging.INFO)
    logging.basicConfig(
        level=lvl,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )


def main(argv=None) -> int:
    p = argparse.ArgumentParser(description="Pattern Signal Bot - 5m forex signal generator")
    p.add_argument("--config", help="Path to YAML config (defaults apply when omitted)")
    p.add_argument("--once", action="store_true", help="Search once for the next interval and exit")
    p.add_argument("--threshold", type=int, help="Minimum confidence (0-99), overrides config")
    p.add_argument("--json", action="store_true", help="With --once, print the signal as JSON")
    args = p.parse_args(argv)

    printer = None if args.json else print

    async def _run(cfg: Config) -> None:
        runner = SignalRunner(cfg, on_signal=printer)
        try:
            if args.once:
                sig = await runner.run_once()
                if args.json:
                    print(format_signal_json(sig))
            else:
                await runner.run_forever()
        finally:
            await runner.provider.close()

    try:
        cfg = load_config(args.config)
        if args.threshold is not None:
            cfg.search.threshold = args.threshold
            validate_config(cfg)
        _setup_logging(cfg.app.log_level)

        asyncio.run(_run(cfg))
        return 0
    except KeyboardInterrupt:
        return 0
    except Exception as e:
        logging.getLogger("main").exception("fatal err=%s", e)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
