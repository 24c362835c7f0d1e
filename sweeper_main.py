# sweeper_main.py

import sys
import logging

from config import ConfigurationError, load_config
from dynamo_utils import make_dynamodb_client
from ttl_sweeper import TtlSweeper

logger = logging.getLogger()

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def main() -> int:
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
    try:
        config = load_config()
    except ConfigurationError as e:
        logger.error("%s", e)
        return 1
    logger.setLevel(config.log_level)

    sweeper = TtlSweeper(make_dynamodb_client(config), config)
    logger.info("TTL sweeper started for table '%s' (attribute '%s')",
                config.table_name, config.ttl_attribute)
    try:
        sweeper.run()
    except KeyboardInterrupt:
        logger.info("Interrupted, stopping")
        return 130
    except Exception:
        logger.exception("TTL sweeper failed")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
