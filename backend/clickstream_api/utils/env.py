def load_env_file() -> None:
    """Load variables from a local .env file without overriding the environment.

    WHAT:
        Reads backend/.env (or the nearest .env) into os.environ.
    WHY:
        Local development keeps DATABASE_URL and VISUALIZATION_* in a file,
        while deployed values exported by the platform always win.
    """
    import logging
    from dotenv import load_dotenv

    logger = logging.getLogger(__name__)

    loaded = load_dotenv(override=False)

    if loaded:
        logger.info("Loaded local .env file (existing variables were NOT overwritten)")
    else:
        logger.debug("No local .env file found or loaded")
