from numtrip.tasks.celery_app import celery_app


@celery_app.task(name="numtrip.import_businesses")
def import_businesses_job(city: str, category: str, limit: int = 100, skip_duplicates: bool = False) -> dict:
    """Run a Places import inside a fresh application context."""
    from numtrip import create_app
    from numtrip.modules.imports.service import import_service

    app = create_app()
    with app.app_context():
        result = import_service().import_businesses(city, category, limit=limit, skip_duplicates=skip_duplicates)
    return result.to_dict()
