import asyncio
import logging
import traceback

from codetrack.app import CodeTrack
from codetrack.config import Config
from codetrack.utils.logger import setup_logger


async def main():
    """Main entry point: run the scheduler until interrupted"""
    Config.validate()
    # Service modules log through child loggers of this one
    setup_logger('codetrack')

    app = CodeTrack()
    try:
        await app.start(run_scheduler=True)
        await asyncio.Event().wait()
    except asyncio.CancelledError:
        pass
    except Exception as e:
        logging.error(f"Fatal error: {e}")
        traceback.print_exc()
    finally:
        await app.close()


def run():
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
