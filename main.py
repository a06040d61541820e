import os

import uvicorn


def main() -> None:
    production = os.getenv("APP_ENV", "development").lower() == "production"
    # Free-tier hosts terminate TLS in front of the app and pass PORT.
    uvicorn.run(
        "rhmeter.factory:create_app",
        factory=True,
        host=os.getenv("APP_HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        reload=not production,
        proxy_headers=production,
        log_level=os.getenv("APP_LOG_LEVEL", "info").lower(),
    )


if __name__ == "__main__":
    main()
