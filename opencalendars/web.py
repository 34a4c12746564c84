from gunicorn.app.base import BaseApplication
from gunicorn.util import import_app
from loguru import logger


class GunicornApplication(BaseApplication):
    """
    Gunicorn application serving the API with uvicorn workers.

    OAuth states and rate limit windows live inside each worker process, so
    running more than one worker splits them between workers.
    """

    def __init__(self, app_uri: str, options: dict | None = None):
        self.app_uri = app_uri
        self.options = options or {}
        super().__init__()

    def load_config(self):
        config = {
            key.lower(): value
            for key, value in self.options.items()
            if key in self.cfg.settings and value is not None
        }

        if config.get("workers", 1) > 1:
            logger.warning(
                f"Starting {config['workers']} workers with process-local stores: "
                "OAuth states and rate limits are not shared between them"
            )

        for key, value in config.items():
            self.cfg.set(key, value)

    def load(self):
        return import_app(self.app_uri)
