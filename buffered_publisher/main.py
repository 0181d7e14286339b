import logging
import sys

import buffered_publisher.config_init as config_init
from buffered_publisher.publisher import make_publisher
from buffered_publisher.rabbit_wrapper import RabbitClient
from buffered_publisher.utils.logger import config_logger


def publish_lines(publisher, client, lines):
    """Publishes every non-empty line and pumps the I/O loop until all were handed to the transport."""
    sent = 0
    handed_over = []

    for line in lines:
        line = line.rstrip("\n")
        if not line:
            continue
        publisher.publish(line, callback=lambda: handed_over.append(1))
        sent += 1

    if not client.is_connected:
        client.connect()

    while len(handed_over) < sent:
        logging.debug(f"Waiting for {sent - len(handed_over)} of {sent} messages to reach the transport")
        client.process_data_events(time_limit=1)

    logging.info(f"Published {sent} messages")
    return sent


def main():
    config = config_init.initialize_config()
    config_logger(config["logging_level"])

    client = None
    try:
        client = RabbitClient(
            config["rabbit_host"],
            port=config["rabbit_port"],
            exchange=config["exchange_name"],
            exchange_type=config["exchange_type"],
            max_retries=config["connect_retries"],
            retry_delay=config["retry_delay"],
        )
        publisher = make_publisher(client, {
            "exchange_name": config["exchange_name"],
            "routing_key": config["routing_key"],
            "persistent": config["persistent"],
        }, encoding=config["encoding"])

        # Lines are buffered by the publisher until the connection is up
        publish_lines(publisher, client, sys.stdin)

    except KeyboardInterrupt:
        logging.info("Publisher stopped by user")
    except Exception as e:
        logging.error(f"Publisher error: {e}", exc_info=True)
        return 1
    finally:
        if client:
            client.stop()
        logging.info("Publisher stopped")
    return 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    logging.info("Starting publisher")
    sys.exit(main())
