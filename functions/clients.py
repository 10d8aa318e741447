import firebase_admin
from firebase_admin import credentials, firestore
from firebase_functions import logger

import config
from push import PushGateway


class Clients:
    """Handles to the document store and the push gateway.

    Built once by each entry point and passed into every handler and job,
    so tests can hand in fakes instead.
    """

    def __init__(self, db, push):
        self.db = db
        self.push = push


def init_app() -> firebase_admin.App:
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass

    if config.USE_EMULATOR:
        return firebase_admin.initialize_app(options={"projectId": config.PROJECT_ID})
    try:
        cred = credentials.Certificate(config.SERVICE_ACCOUNT_PATH)
    except (FileNotFoundError, ValueError):
        logger.info("No service account key, using application default credentials",
                    path=config.SERVICE_ACCOUNT_PATH)
        return firebase_admin.initialize_app(options={"projectId": config.PROJECT_ID})
    return firebase_admin.initialize_app(cred)


def init_clients() -> Clients:
    app = init_app()
    return Clients(db=firestore.client(app), push=PushGateway(app))
