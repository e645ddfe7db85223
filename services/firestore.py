import asyncio
import logging
from typing import List, Dict, Any, Callable, Optional, TypeVar

import firebase_admin
from firebase_admin import firestore as fs
from google.api_core import exceptions as gcp_exceptions
from google.cloud import firestore
from google.cloud.firestore_v1 import FieldFilter

from services.errors import AuthError, NotFound, StoreError
from utils.blocking import call_blocking

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _to_record(snapshot) -> Dict[str, Any]:
    data = snapshot.to_dict() or {}
    data["id"] = snapshot.id
    return data


class FirestoreDB:
    def __init__(self, app: firebase_admin.App, timeout: Optional[float] = None):
        self.db = fs.client(app)
        self.timeout = timeout

    def collection(self, name: str):
        return self.db.collection(name)

    async def _call(self, description: str, func: Callable[..., T], *args, **kwargs) -> T:
        """Run a blocking Firestore call, mapping backend failures onto the error taxonomy"""
        try:
            return await call_blocking(func, *args, timeout=self.timeout, **kwargs)
        except gcp_exceptions.PermissionDenied as e:
            raise AuthError(f"Not permitted to {description}") from e
        except gcp_exceptions.GoogleAPIError as e:
            logger.error("Firestore error while trying to %s: %s", description, e)
            raise StoreError(f"Failed to {description}") from e
        except asyncio.TimeoutError as e:
            logger.error("Firestore timed out while trying to %s", description)
            raise StoreError(f"Timed out trying to {description}") from e

    async def create(self, collection: str, record: Dict[str, Any]) -> str:
        """Create a document with a generated id and return the id"""
        doc_ref = self.collection(collection).document()
        await self._call(f"create {collection} document", doc_ref.set, record)
        return doc_ref.id

    async def get(self, collection: str, doc_id: str) -> Dict[str, Any]:
        """
        Get a document by id

        Raises:
            NotFound: If the document does not exist
        """
        doc_ref = self.collection(collection).document(doc_id)
        snapshot = await self._call(f"read {collection}/{doc_id}", doc_ref.get)
        if not snapshot.exists:
            raise NotFound(collection, doc_id)
        return _to_record(snapshot)

    async def query(self, collection: str, field: str, value: Any) -> List[Dict[str, Any]]:
        """Get every document whose field equals value, in no particular order"""
        query = self.collection(collection).where(filter=FieldFilter(field, "==", value))

        def run_query():
            return [_to_record(doc) for doc in query.stream()]

        return await self._call(f"query {collection} by {field}", run_query)

    async def delete(self, collection: str, doc_id: str) -> None:
        """Delete a document; deleting a missing document succeeds"""
        doc_ref = self.collection(collection).document(doc_id)
        await self._call(f"delete {collection}/{doc_id}", doc_ref.delete)

    async def list_recent(self, collection: str, order_field: str, limit: int) -> List[Dict[str, Any]]:
        """Get the newest documents of a collection, sorted by order_field descending"""
        query = self.collection(collection).order_by(
            order_field, direction=firestore.Query.DESCENDING
        ).limit(limit)

        def run_query():
            return [_to_record(doc) for doc in query.stream()]

        return await self._call(f"list {collection}", run_query)

    async def toggle_membership(
            self,
            collection: str,
            doc_id: str,
            field: str,
            opposite_field: str,
            value: str,
    ) -> Dict[str, Any]:
        """
        Toggle value in an array field, removing it from opposite_field when added

        Runs in a transaction so concurrent toggles cannot leave the value in
        both fields.

        Raises:
            NotFound: If the document does not exist
        """
        doc_ref = self.collection(collection).document(doc_id)
        transaction = self.db.transaction()

        @firestore.transactional
        def update_in_transaction(transaction, doc_ref):
            snapshot = doc_ref.get(transaction=transaction)
            if not snapshot.exists:
                return None

            record = _to_record(snapshot)
            members = list(record.get(field) or [])
            opposite = list(record.get(opposite_field) or [])

            if value in members:
                members.remove(value)
            else:
                members.append(value)
                opposite = [member for member in opposite if member != value]

            transaction.update(doc_ref, {field: members, opposite_field: opposite})
            record[field] = members
            record[opposite_field] = opposite
            return record

        result = await self._call(
            f"update {collection}/{doc_id}", update_in_transaction, transaction, doc_ref
        )
        if result is None:
            raise NotFound(collection, doc_id)
        return result
