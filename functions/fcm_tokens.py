from firebase_functions import logger
from google.cloud import firestore as gcf

import config


def _user_ref(db, user_id):
    return db.collection(config.USERS_COLLECTION).document(user_id)


def save_fcm_token(db, user_id, token):
    if not user_id or not token:
        raise ValueError("user_id and token are required")
    ref = _user_ref(db, user_id)
    if not ref.get().exists:
        logger.warn("User not found when saving FCM token", userId=user_id)
        return False
    ref.update({"fcmTokens": gcf.ArrayUnion([token]), "updatedAt": gcf.SERVER_TIMESTAMP})
    logger.info("FCM token saved", userId=user_id)
    return True


def remove_fcm_token(db, user_id, token):
    """Unregister a device token. False if the user does not exist."""
    if not user_id or not token:
        raise ValueError("user_id and token are required")
    ref = _user_ref(db, user_id)
    if not ref.get().exists:
        logger.warn("User not found when removing FCM token", userId=user_id)
        return False
    ref.update({"fcmTokens": gcf.ArrayRemove([token]), "updatedAt": gcf.SERVER_TIMESTAMP})
    logger.info("FCM token removed", userId=user_id)
    return True
