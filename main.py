import os
import sys

import uvicorn

from opencalendars.core.config import settings


def main():
    is_linux = sys.platform.startswith("linux")

    if settings.debug:
        os.environ["PYTHONASYNCIODEBUG"] = "1"
        uvicorn.run(
            app="opencalendars.main:app",
            host=settings.backend_host,
            port=settings.backend_port,
            reload=settings.reload_uvicorn,
            workers=settings.workers_count,
            log_level="debug",
        )
    else:
        if is_linux:
            from opencalendars.web import GunicornApplication

            options = {
                "bind": f"{settings.backend_host}:{settings.backend_port}",
                "workers": settings.workers_count,
                "worker_class": "uvicorn.workers.UvicornWorker",
            }
            GunicornApplication("opencalendars.main:app", options).run()
        else:
            uvicorn.run(
                app="opencalendars.main:app",
                host=settings.backend_host,
                port=settings.backend_port,
                reload=settings.reload_uvicorn,
                workers=settings.workers_count,
            )


if __name__ == "__main__":
    main()
