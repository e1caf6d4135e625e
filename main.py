import os

import uvicorn

from cultura.core.app import app  # noqa: F401
from cultura.core.config import settings

if __name__ == "__main__":
    PORT = os.getenv("PORT", settings.PORT)
    reload = settings.APP_ENV == "development"
    uvicorn.run("cultura.core.app:app", host="0.0.0.0", port=int(PORT), reload=reload)
