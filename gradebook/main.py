import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from gradebook.api.v1.academic_year_details.router import router as academic_year_details_router
from gradebook.api.v1.academic_years.router import router as academic_years_router
from gradebook.api.v1.assignments.router import router as assignments_router
from gradebook.api.v1.classes.router import router as classes_router
from gradebook.api.v1.rankings.router import router as rankings_router
from gradebook.api.v1.sequences.router import router as sequences_router
from gradebook.api.v1.students.router import router as students_router
from gradebook.api.v1.subjects.router import router as subjects_router
from gradebook.api.v1.terms.router import router as terms_router
from gradebook.core.logging import setup_logging

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title="Gradebook Backend")

    # CORS: allow frontend to call this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(academic_year_details_router)
    app.include_router(terms_router)
    app.include_router(sequences_router)
    app.include_router(subjects_router)
    app.include_router(classes_router)
    app.include_router(students_router)
    app.include_router(assignments_router)
    app.include_router(academic_years_router)
    app.include_router(rankings_router)

    logger.info("Gradebook API ready with %d routes", len(app.routes))
    return app


app = create_app()
