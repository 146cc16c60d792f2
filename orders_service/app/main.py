import uvicorn
from fastapi import FastAPI
from prometheus_fastapi_instrumentator import Instrumentator

from config import HOST, INIT_DB, PORT
from database import SessionLocal, engine, init_models, wait_for_db
from logger import logger
from routes import orders, simple_orders
from services import init_sample_data


def create_app() -> FastAPI:
    app = FastAPI(title="Orders Service")

    @app.on_event("startup")
    async def startup():
        logger.info("Orders Service startup")
        app.state.db = await wait_for_db()
        if INIT_DB:
            await init_models()
            async with SessionLocal() as session:
                await init_sample_data(session)

    @app.on_event("shutdown")
    async def shutdown():
        logger.info("Orders Service shutdown")
        await engine.dispose()

    Instrumentator().instrument(app).expose(app)

    app.include_router(simple_orders.router)
    app.include_router(orders.router)
    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(app, host=HOST, port=PORT)
