from configparser import ConfigParser
import codecs
import os

CONFIG_FILE = "config.ini"


def parse_bool(name, value):
    value = str(value).strip().lower()
    if value == 'true':
        return True
    if value == 'false':
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value}")


def initialize_config(config_file=CONFIG_FILE):
    """ Parse env variables or config file to find publisher config params

    Each parameter is looked up in the environment first and then in the
    config file. If a parameter is missing from both a KeyError is thrown;
    if it could not be parsed, a ValueError is thrown. On success a flat
    dict with the config params is returned.
    """
    config = ConfigParser(os.environ)
    config.read(config_file)

    config_params = {}

    try:
        # LOGGING
        config_params["logging_level"] = os.getenv('LOGGING_LEVEL', config["DEFAULT"]["LOGGING_LEVEL"])

        # RABBITMQ
        config_params["rabbit_host"] = os.getenv('RABBIT_HOST', config["RABBITMQ"]["RABBIT_HOST"])
        config_params["rabbit_port"] = int(os.getenv('RABBIT_PORT', config["RABBITMQ"]["RABBIT_PORT"]))
        config_params["exchange_name"] = os.getenv('EXCHANGE_NAME', config["RABBITMQ"]["EXCHANGE_NAME"])
        config_params["exchange_type"] = os.getenv('EXCHANGE_TYPE', config["RABBITMQ"]["EXCHANGE_TYPE"])
        config_params["routing_key"] = os.getenv('ROUTING_KEY', config["RABBITMQ"]["ROUTING_KEY"])
        config_params["persistent"] = parse_bool('PERSISTENT', os.getenv('PERSISTENT', config["RABBITMQ"]["PERSISTENT"]))
        config_params["connect_retries"] = int(os.getenv('CONNECT_RETRIES', config["RABBITMQ"]["CONNECT_RETRIES"]))
        config_params["retry_delay"] = float(os.getenv('RETRY_DELAY', config["RABBITMQ"]["RETRY_DELAY"]))

        # PUBLISHER
        config_params["encoding"] = os.getenv('ENCODING', config["PUBLISHER"]["ENCODING"])
        codecs.lookup(config_params["encoding"])

    except KeyError as e:
        raise KeyError(f"Required key was not found in {config_file} or Env Vars. Error: {e}. Aborting publisher")
    except (ValueError, LookupError) as e:
        raise ValueError(f"Key could not be parsed in {config_file} or Env Vars. Error: {e}. Aborting publisher")

    return config_params
