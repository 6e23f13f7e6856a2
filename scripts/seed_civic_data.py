"""
Loads the administrative-boundary dataset into the civic collections.

The dataset is JSON with four lists keyed by collection. Records refer to
their parents by "code"; the script upserts by code and rewrites the
references as ObjectIds, so it can be re-run safely.

    python scripts/seed_civic_data.py data/civic_sample.json
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from dotenv import load_dotenv

sys.path.insert(0, str(Path(__file__).parent.parent))

load_dotenv()

import logging

from civiclink.db.mongo import (
    connect_to_mongo,
    close_mongo_connection,
    get_civic_collection,
    STATES,
    DISTRICTS,
    ASSEMBLY_CONSTITUENCIES,
    PARLIAMENTARY_CONSTITUENCIES,
)

logging.basicConfig(level=logging.INFO, format='%(levelname)s: %(message)s')
logger = logging.getLogger(__name__)

# collection -> {reference field: collection it points to}
PARENTS = {
    STATES: {},
    DISTRICTS: {"state": STATES},
    PARLIAMENTARY_CONSTITUENCIES: {"state": STATES},
    ASSEMBLY_CONSTITUENCIES: {
        "district": DISTRICTS,
        "parliamentary_constituency": PARLIAMENTARY_CONSTITUENCIES,
    },
}


async def seed(dataset: dict) -> dict:
    """
    Upserts every record, parents first.

    Returns:
        Number of records written per collection
    """
    ids = {name: {} for name in PARENTS}
    written = {}

    for name, parents in PARENTS.items():
        collection = get_civic_collection(name)
        records = dataset.get(name, [])

        for record in records:
            document = dict(record)
            for field, parent in parents.items():
                code = document.get(field)
                if code is None:
                    continue
                if code not in ids[parent]:
                    raise ValueError(f"{name} '{record['code']}' refers to unknown {field} '{code}'")
                document[field] = ids[parent][code]

            await collection.update_one({"code": document["code"]}, {"$set": document}, upsert=True)
            stored = await collection.find_one({"code": document["code"]}, projection={"_id": 1})
            ids[name][document["code"]] = stored["_id"]

        written[name] = len(records)
        logger.info(f"  ✅ {name}: {len(records)} records")

    return written


async def main(path: Path):
    dataset = json.loads(path.read_text(encoding="utf-8"))

    await connect_to_mongo()
    try:
        await get_civic_collection(STATES).create_index("code", unique=True)
        await get_civic_collection(DISTRICTS).create_index("code", unique=True)
        await get_civic_collection(ASSEMBLY_CONSTITUENCIES).create_index("code", unique=True)
        await get_civic_collection(PARLIAMENTARY_CONSTITUENCIES).create_index("code", unique=True)

        logger.info(f"📋 Seeding civic data from {path}")
        await seed(dataset)
        logger.info("✅ Civic data loaded")
    finally:
        await close_mongo_connection()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("dataset", type=Path, help="Path to the boundary dataset JSON")
    args = parser.parse_args()

    asyncio.run(main(args.dataset))
