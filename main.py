from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import config
from database.connection import Base, engine
import models  # registers every model on Base.metadata
from services.errors import AllocationError
from utils.logging_utils import get_logger
from utils.rate_limiter import setup_rate_limiting

logger = get_logger("main")

Base.metadata.create_all(bind=engine)

app = FastAPI(title="Room Allocation Tracker")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_rate_limiting(app)


@app.exception_handler(AllocationError)
async def allocation_error_handler(request: Request, exc: AllocationError):
    logger.info("Request rejected | path=%s error=%s field=%s", request.url.path, exc.code, exc.field)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


from endpoints import allocations, rooms, employees, guests, dashboard
app.include_router(allocations.router)
app.include_router(rooms.router)
app.include_router(employees.router)
app.include_router(guests.router)
app.include_router(dashboard.router)


@app.get("/")
def read_root():
    return {"message": "Room Allocation Tracker API"}
