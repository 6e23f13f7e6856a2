"""
civiclink/db/indexes.py

Purpose: Database index management

- Unique indexes are the final authority on duplicate credentials
- Performance indexes for presence and analytics queries
"""

from civiclink.db.mongo import (
    get_users_collection,
    get_user_sessions_collection,
    get_civic_collection,
    DISTRICTS,
    ASSEMBLY_CONSTITUENCIES,
    PARLIAMENTARY_CONSTITUENCIES,
    STATES,
)
from civiclink.core.logging import get_logger

logger = get_logger(__name__)

# Credential fields that must be unique among non-empty string values
UNIQUE_CREDENTIAL_FIELDS = ("phone", "email", "voter_id")


def credential_index_name(field: str) -> str:
    return f"{field}_unique"


async def create_indexes():
    """
    Creates all necessary database indexes.
    This function is idempotent - safe to run multiple times.
    """
    try:
        users = get_users_collection()
        sessions = get_user_sessions_collection()

        logger.info("Creating database indexes...")

        # ==============================================
        # USERS COLLECTION INDEXES
        # ==============================================

        await users.create_index("firebase_id", unique=True, name="firebase_id_unique")
        logger.debug("Created unique index on users.firebase_id")

        # Empty and missing values are allowed to repeat
        for field in UNIQUE_CREDENTIAL_FIELDS:
            await users.create_index(
                field,
                unique=True,
                partialFilterExpression={field: {"$gt": ""}},
                name=credential_index_name(field)
            )
            logger.debug(f"Created partial unique index on users.{field}")

        await users.create_index("active_sockets.socket_id", name="active_socket_idx")
        logger.debug("Created index on users.active_sockets.socket_id")

        await users.create_index("location.state", name="location_state_idx")
        logger.debug("Created index on users.location.state")

        await users.create_index("created_at", name="created_at_idx")
        logger.debug("Created index on users.created_at")

        # ==============================================
        # USER SESSIONS COLLECTION INDEXES
        # ==============================================

        await sessions.create_index("connected_at", name="session_connected_idx")
        await sessions.create_index(
            [("state", 1), ("connected_at", 1)],
            name="session_state_connected_idx"
        )
        await sessions.create_index("user_id", name="session_user_idx")
        logger.debug("Created indexes on user_sessions")

        # ==============================================
        # CIVIC REFERENCE INDEXES
        # ==============================================

        for name in (STATES, DISTRICTS, ASSEMBLY_CONSTITUENCIES, PARLIAMENTARY_CONSTITUENCIES):
            await get_civic_collection(name).create_index("name", name=f"{name}_name_idx")

        await get_civic_collection(DISTRICTS).create_index("state", name="district_state_idx")
        await get_civic_collection(ASSEMBLY_CONSTITUENCIES).create_index(
            "district", name="ac_district_idx"
        )
        logger.debug("Created indexes on civic reference collections")

        logger.info("All database indexes created successfully")

        user_indexes = await users.index_information()
        session_indexes = await sessions.index_information()

        logger.info(
            f"Index summary: Users={len(user_indexes)}, "
            f"Sessions={len(session_indexes)}"
        )

    except Exception as e:
        logger.error(f"Failed to create indexes: {str(e)}", exc_info=True)
        raise


if __name__ == "__main__":
    import asyncio
    from civiclink.db.mongo import connect_to_mongo, close_mongo_connection

    async def main():
        await connect_to_mongo()
        await create_indexes()
        await close_mongo_connection()

    asyncio.run(main())
