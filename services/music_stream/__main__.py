import uvicorn

from .app import deps

if __name__ == "__main__":
    settings = deps.get_settings()
    uvicorn.run(
        "services.music_stream.app.main:app",
        host="0.0.0.0",
        port=settings.port,
        log_config=None,
    )
