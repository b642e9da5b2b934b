import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from clinic_booking.core import config
from clinic_booking.core.logging_config import configure_logging
from clinic_booking.database import Base, engine, ensure_appointment_schema, ensure_doctor_schema
from clinic_booking.errors import BookingError
from clinic_booking.models import appointment, doctor  # noqa: F401
from clinic_booking.routes import appointment_routes, availability_routes, doctor_routes

configure_logging()
config.validate_runtime_config()

app = FastAPI(title='Clinic Booking API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error('%s %s failed: %s', request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.on_event('startup')
def initialize_database() -> None:
    try:
        Base.metadata.create_all(bind=engine)
        ensure_doctor_schema()
        ensure_appointment_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.get('/')
def root():
    return {'status': 'Clinic Booking API Running'}


app.include_router(doctor_routes.router, prefix='/doctors')
app.include_router(availability_routes.router, prefix='/doctors')
app.include_router(appointment_routes.router, prefix='/appointments')
