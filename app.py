from deployer.server import app  # re-use the FastAPI instance
from deployer.settings import settings

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
