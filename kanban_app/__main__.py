import logging

from .config import load_config
from .server import create_app


def main():
    config = load_config()
    logging.basicConfig(level=logging.DEBUG if config["KANBAN_DEBUG"] else logging.INFO)
    app = create_app(config)
    app.logger.info(f"Starting Kanban app on port {config['KANBAN_PORT']} with DB_URI: {config['KANBAN_DB']}")
    app.run(debug=config["KANBAN_DEBUG"], port=config["KANBAN_PORT"], use_reloader=False, threaded=True)


if __name__ == "__main__":
    main()
