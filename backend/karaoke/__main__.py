import uvicorn

from karaoke import config

if __name__ == "__main__":
    uvicorn.run("karaoke.main:socket_app", host=config.HOST, port=config.PORT, log_level=config.LOG_LEVEL.lower())
