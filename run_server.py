"""Start the API server with uvicorn."""

if __name__ == "__main__":
    import uvicorn

    from adminws.settings import app_settings

    uvicorn.run(
        "adminws:application",
        factory=True,
        host=app_settings.API_HOST,
        port=app_settings.API_PORT,
    )
