import time
import unittest
from unittest.mock import MagicMock, patch

from botocore.exceptions import ClientError
from firebase_admin import auth
from google.api_core import exceptions as gcp_exceptions
from google.cloud import firestore

from services.errors import AuthError, NotFound, StoreError, UploadFailed
from services.firestore import FirestoreDB
from services.identity import FirebaseIdentityProvider
from services.s3 import S3Service


def client_error(code, operation):
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


class TestS3Service(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.client = MagicMock()
        self.service = S3Service("media", self.client, public_base_url="https://cdn.example.test/", timeout=1)

    async def test_put_returns_public_url(self):
        url = await self.service.put("Post_Images/ref", b"data", metadata={"user_id": "user-1"})

        self.assertEqual(url, "https://cdn.example.test/Post_Images/ref")
        self.client.put_object.assert_called_once_with(
            Bucket="media",
            Key="Post_Images/ref",
            Body=b"data",
            ContentType="image/jpeg",
            Metadata={"user_id": "user-1"},
        )

    async def test_put_error_is_upload_failed(self):
        self.client.put_object.side_effect = client_error("500", "PutObject")

        with self.assertRaises(UploadFailed):
            await self.service.put("Post_Images/ref", b"data")

    async def test_put_timeout_is_upload_failed(self):
        self.client.put_object.side_effect = lambda **kwargs: time.sleep(0.2)
        service = S3Service("media", self.client, public_base_url="https://cdn.example.test", timeout=0.01)

        with self.assertRaises(UploadFailed):
            await service.put("Post_Images/ref", b"data")

    async def test_delete_missing_key_is_not_found(self):
        self.client.head_object.side_effect = client_error("404", "HeadObject")

        with self.assertRaises(NotFound):
            await self.service.delete("Post_Images/ref")
        self.client.delete_object.assert_not_called()

    async def test_delete_existing_key(self):
        await self.service.delete("Post_Images/ref")

        self.client.delete_object.assert_called_once_with(Bucket="media", Key="Post_Images/ref")

    async def test_delete_error_is_store_error(self):
        self.client.delete_object.side_effect = client_error("AccessDenied", "DeleteObject")

        with self.assertRaises(StoreError):
            await self.service.delete("Post_Images/ref")

    def test_presigned_url_without_public_base(self):
        self.client.generate_presigned_url.return_value = "https://signed.example.test/x"
        service = S3Service("media", self.client, url_expiration_seconds=60)

        self.assertEqual(service.get_url("x"), "https://signed.example.test/x")
        self.client.generate_presigned_url.assert_called_once_with(
            'get_object', Params={'Bucket': "media", 'Key': "x"}, ExpiresIn=60
        )


class TestFirestoreDB(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        patcher = patch("services.firestore.fs.client")
        self.addCleanup(patcher.stop)
        self.client = patcher.start().return_value
        self.db = FirestoreDB(MagicMock(), timeout=1)
        self.doc_ref = self.client.collection.return_value.document.return_value

    async def test_create_returns_generated_id(self):
        self.doc_ref.id = "post-1"

        doc_id = await self.db.create("Posts", {"text": "hello"})

        self.assertEqual(doc_id, "post-1")
        self.doc_ref.set.assert_called_once_with({"text": "hello"})

    async def test_get_missing_document_is_not_found(self):
        self.doc_ref.get.return_value.exists = False

        with self.assertRaises(NotFound):
            await self.db.get("Posts", "post-1")

    async def test_get_attaches_id(self):
        snapshot = self.doc_ref.get.return_value
        snapshot.exists = True
        snapshot.id = "post-1"
        snapshot.to_dict.return_value = {"text": "hello"}

        self.assertEqual(await self.db.get("Posts", "post-1"), {"text": "hello", "id": "post-1"})

    async def test_query_returns_records(self):
        doc = MagicMock(id="post-1")
        doc.to_dict.return_value = {"userUID": "user-1"}
        self.client.collection.return_value.where.return_value.stream.return_value = [doc]

        records = await self.db.query("Posts", "userUID", "user-1")

        self.assertEqual(records, [{"userUID": "user-1", "id": "post-1"}])

    async def test_backend_errors_are_mapped(self):
        self.doc_ref.delete.side_effect = gcp_exceptions.ServiceUnavailable("down")
        with self.assertRaises(StoreError):
            await self.db.delete("Posts", "post-1")

        self.doc_ref.delete.side_effect = gcp_exceptions.PermissionDenied("nope")
        with self.assertRaises(AuthError):
            await self.db.delete("Posts", "post-1")

    async def test_list_recent_orders_newest_first(self):
        doc = MagicMock(id="post-2")
        doc.to_dict.return_value = {"text": "newest"}
        ordered = self.client.collection.return_value.order_by
        ordered.return_value.limit.return_value.stream.return_value = [doc]

        records = await self.db.list_recent("Posts", "publishedDate", 5)

        self.assertEqual(records, [{"text": "newest", "id": "post-2"}])
        ordered.assert_called_once_with("publishedDate", direction=firestore.Query.DESCENDING)
        ordered.return_value.limit.assert_called_once_with(5)


class TestFirestoreToggleMembership(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        client_patcher = patch("services.firestore.fs.client")
        self.addCleanup(client_patcher.stop)
        self.client = client_patcher.start().return_value
        # Run the transactional function directly against the mocked transaction
        transactional_patcher = patch("services.firestore.firestore.transactional", side_effect=lambda func: func)
        self.addCleanup(transactional_patcher.stop)
        transactional_patcher.start()

        self.db = FirestoreDB(MagicMock(), timeout=1)
        self.doc_ref = self.client.collection.return_value.document.return_value
        self.transaction = self.client.transaction.return_value
        self.snapshot = self.doc_ref.get.return_value
        self.snapshot.exists = True
        self.snapshot.id = "post-1"

    async def test_adding_removes_value_from_opposite_field(self):
        self.snapshot.to_dict.return_value = {"likedIDs": [], "dislikedIDs": ["user-2", "user-3"]}

        record = await self.db.toggle_membership("Posts", "post-1", "likedIDs", "dislikedIDs", "user-2")

        self.doc_ref.get.assert_called_once_with(transaction=self.transaction)
        self.transaction.update.assert_called_once_with(
            self.doc_ref, {"likedIDs": ["user-2"], "dislikedIDs": ["user-3"]}
        )
        self.assertEqual(record, {"likedIDs": ["user-2"], "dislikedIDs": ["user-3"], "id": "post-1"})

    async def test_toggling_again_removes_value(self):
        self.snapshot.to_dict.return_value = {"likedIDs": ["user-2"], "dislikedIDs": ["user-3"]}

        record = await self.db.toggle_membership("Posts", "post-1", "likedIDs", "dislikedIDs", "user-2")

        self.transaction.update.assert_called_once_with(
            self.doc_ref, {"likedIDs": [], "dislikedIDs": ["user-3"]}
        )
        self.assertEqual(record["likedIDs"], [])

    async def test_missing_fields_are_treated_as_empty(self):
        self.snapshot.to_dict.return_value = {"text": "hello"}

        record = await self.db.toggle_membership("Posts", "post-1", "dislikedIDs", "likedIDs", "user-2")

        self.transaction.update.assert_called_once_with(
            self.doc_ref, {"dislikedIDs": ["user-2"], "likedIDs": []}
        )
        self.assertEqual(record["text"], "hello")

    async def test_missing_document_is_not_found(self):
        self.snapshot.exists = False

        with self.assertRaises(NotFound):
            await self.db.toggle_membership("Posts", "post-1", "likedIDs", "dislikedIDs", "user-2")
        self.transaction.update.assert_not_called()

    async def test_backend_errors_are_mapped(self):
        self.doc_ref.get.side_effect = gcp_exceptions.Aborted("contention")

        with self.assertRaises(StoreError):
            await self.db.toggle_membership("Posts", "post-1", "likedIDs", "dislikedIDs", "user-2")


class TestFirebaseIdentityProvider(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.provider = FirebaseIdentityProvider(reauth_max_age_seconds=300)

    async def test_fresh_token_reauthenticates(self):
        claims = {"uid": "user-1", "auth_time": time.time() - 10}
        with patch("services.identity.auth.verify_id_token", return_value=claims) as verify:
            self.assertEqual(await self.provider.reauthenticate("user-1", "token"), claims)
        self.assertTrue(verify.call_args.kwargs["check_revoked"])

    async def test_stale_sign_in_is_rejected(self):
        claims = {"uid": "user-1", "auth_time": time.time() - 3600}
        with patch("services.identity.auth.verify_id_token", return_value=claims):
            with self.assertRaises(AuthError):
                await self.provider.reauthenticate("user-1", "token")

    async def test_token_of_other_user_is_rejected(self):
        claims = {"uid": "user-2", "auth_time": time.time()}
        with patch("services.identity.auth.verify_id_token", return_value=claims):
            with self.assertRaises(AuthError):
                await self.provider.reauthenticate("user-1", "token")

    async def test_invalid_token_is_auth_error(self):
        with patch("services.identity.auth.verify_id_token", side_effect=auth.InvalidIdTokenError("bad")):
            with self.assertRaises(AuthError):
                await self.provider.verify("token")

    async def test_delete_missing_user_is_not_found(self):
        with patch("services.identity.auth.delete_user", side_effect=auth.UserNotFoundError("gone")):
            with self.assertRaises(NotFound):
                await self.provider.delete_user("user-1")


if __name__ == "__main__":
    unittest.main()
