import unittest

from postfeed.tests.fakes import PNG_BYTES, ApiHarness


class AuthApiTests(unittest.TestCase):
    def setUp(self):
        self.api = ApiHarness()
        self.client = self.api.client

    def test_signup_and_login(self):
        user_id = self.api.signup()
        response = self.client.post(
            "/auth/login", json={"email": "max@test.com", "password": "secret"}
        )
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["userId"], user_id)
        self.assertTrue(payload["token"])
        self.assertNotEqual(self.api.db.get_user(user_id).password, "secret")

    def test_signup_rejects_short_password(self):
        response = self.client.put(
            "/auth/signup",
            json={"email": "max@test.com", "password": "abc", "name": "Max"},
        )
        self.assertEqual(response.status_code, 422)
        body = response.json()
        self.assertEqual(body["message"], "Validation failed.")
        self.assertIn("Password too short!", [item["message"] for item in body["data"]])

    def test_signup_rejects_invalid_email_and_blank_name(self):
        response = self.client.put(
            "/auth/signup",
            json={"email": "not-an-email", "password": "secret", "name": "  "},
        )
        self.assertEqual(response.status_code, 422)
        fields = {item["field"] for item in response.json()["data"]}
        self.assertEqual(fields, {"email", "name"})

    def test_signup_missing_field_uses_error_shape(self):
        response = self.client.put("/auth/signup", json={"email": "max@test.com"})
        self.assertEqual(response.status_code, 422)
        body = response.json()
        self.assertEqual(body["message"], "Validation failed.")
        self.assertIn("password", {item["field"] for item in body["data"]})

    def test_signup_duplicate_email_is_forbidden(self):
        self.api.signup()
        response = self.client.put(
            "/auth/signup",
            json={"email": "max@test.com", "password": "secret", "name": "Max"},
        )
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["message"], "User exists already!")

    def test_login_wrong_password(self):
        self.api.signup()
        response = self.client.post(
            "/auth/login", json={"email": "max@test.com", "password": "nope!"}
        )
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["message"], "Wrong password!")

    def test_login_unknown_email(self):
        response = self.client.post(
            "/auth/login", json={"email": "ghost@test.com", "password": "secret"}
        )
        self.assertEqual(response.status_code, 401)

    def test_status_roundtrip(self):
        self.api.signup()
        headers = self.api.login()

        response = self.client.get("/auth/status", headers=headers)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "I am new!")

        response = self.client.patch(
            "/auth/status", json={"status": "Writing posts"}, headers=headers
        )
        self.assertEqual(response.status_code, 200)
        response = self.client.get("/auth/status", headers=headers)
        self.assertEqual(response.json()["status"], "Writing posts")

    def test_empty_status_rejected(self):
        self.api.signup()
        headers = self.api.login()
        response = self.client.patch("/auth/status", json={"status": ""}, headers=headers)
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["message"], "No status to update with.")


class FeedApiTests(unittest.TestCase):
    def setUp(self):
        self.api = ApiHarness()
        self.client = self.api.client
        self.user_id = self.api.signup()
        self.headers = self.api.login()

    def test_feed_requires_auth(self):
        response = self.client.get("/feed/posts")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["message"], "Not authenticated.")

        response = self.client.get(
            "/feed/posts", headers={"Authorization": "Bearer not-a-token"}
        )
        self.assertEqual(response.status_code, 401)

    def test_create_post_links_user_and_broadcasts(self):
        post = self.api.create_post(self.headers)

        self.assertEqual(post["title"], "First post")
        self.assertEqual(post["creator"], {"_id": self.user_id, "name": "Max"})
        self.assertTrue(post["imageUrl"].startswith("images/"))
        self.assertTrue(post["imageUrl"].endswith("-cat.png"))
        self.assertIn(post["imageUrl"], self.api.storage.stored_objects)
        self.assertEqual(self.api.db.get_user(self.user_id).posts, [post["_id"]])

        event, payload = self.api.broadcaster.events[-1]
        self.assertEqual(event, "posts")
        self.assertEqual(payload["action"], "create")
        self.assertEqual(payload["post"]["_id"], post["_id"])
        self.assertEqual(payload["post"]["creator"]["name"], "Max")

    def test_create_post_requires_image(self):
        response = self.client.post(
            "/feed/post",
            data={"title": "First post", "content": "Hello world"},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["message"], "No image provided.")

    def test_create_post_ignores_non_image_upload(self):
        response = self.client.post(
            "/feed/post",
            data={"title": "First post", "content": "Hello world"},
            files={"image": ("notes.txt", b"hello", "text/plain")},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 422)
        self.assertEqual(self.api.storage.stored_objects, {})

    def test_create_post_validates_title_and_content(self):
        response = self.client.post(
            "/feed/post",
            data={"title": "Hi", "content": "tiny"},
            files={"image": ("cat.png", PNG_BYTES, "image/png")},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 422)
        messages = [item["message"] for item in response.json()["data"]]
        self.assertEqual(messages, ["Title is invalid.", "Content is invalid."])
        self.assertEqual(self.api.storage.stored_objects, {})

    def test_posts_page_falls_back_to_first(self):
        self.api.create_post(self.headers, title="Post one")
        newest = self.api.create_post(self.headers, title="Post two")

        for params in ({}, {"page": 0}, {"page": -3}):
            response = self.client.get("/feed/posts", params=params, headers=self.headers)
            self.assertEqual(response.status_code, 200, params)
            payload = response.json()
            self.assertEqual(payload["totalItems"], 2)
            self.assertEqual(payload["posts"][0]["_id"], newest["_id"])

    def test_pagination_newest_first(self):
        first = self.api.create_post(self.headers, title="Post one")
        second = self.api.create_post(self.headers, title="Post two")
        third = self.api.create_post(self.headers, title="Post three")

        response = self.client.get("/feed/posts", params={"page": 1}, headers=self.headers)
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["totalItems"], 3)
        self.assertEqual(
            [post["_id"] for post in payload["posts"]], [third["_id"], second["_id"]]
        )

        response = self.client.get("/feed/posts", params={"page": 2}, headers=self.headers)
        self.assertEqual([post["_id"] for post in response.json()["posts"]], [first["_id"]])

    def test_get_post(self):
        post = self.api.create_post(self.headers)
        response = self.client.get(f"/feed/post/{post['_id']}", headers=self.headers)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["post"]["content"], "Hello world")

        response = self.client.get("/feed/post/missing", headers=self.headers)
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["message"], "Could not find post.")

    def test_update_post_keeping_image(self):
        post = self.api.create_post(self.headers)
        response = self.client.put(
            f"/feed/post/{post['_id']}",
            data={
                "title": "Edited title",
                "content": "Edited content",
                "image": post["imageUrl"],
            },
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 200)
        updated = response.json()["post"]
        self.assertEqual(updated["title"], "Edited title")
        self.assertEqual(updated["imageUrl"], post["imageUrl"])
        self.assertIn(post["imageUrl"], self.api.storage.stored_objects)
        self.assertEqual(self.api.broadcaster.events[-1][1]["action"], "update")

    def test_update_post_with_new_image_clears_old(self):
        post = self.api.create_post(self.headers)
        response = self.client.put(
            f"/feed/post/{post['_id']}",
            data={"title": "Edited title", "content": "Edited content"},
            files={"image": ("dog.jpg", PNG_BYTES, "image/jpeg")},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 200)
        updated = response.json()["post"]
        self.assertTrue(updated["imageUrl"].endswith("-dog.jpg"))
        self.assertNotIn(post["imageUrl"], self.api.storage.stored_objects)

    def test_update_post_without_image(self):
        post = self.api.create_post(self.headers)
        response = self.client.put(
            f"/feed/post/{post['_id']}",
            data={"title": "Edited title", "content": "Edited content"},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["message"], "No file picked.")

    def test_update_missing_post_not_found(self):
        response = self.client.put(
            "/feed/post/missing",
            data={
                "title": "Edited title",
                "content": "Edited content",
                "image": "images/a.png",
            },
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["message"], "Could not find post.")

    def test_rejected_update_discards_new_upload(self):
        post = self.api.create_post(self.headers)
        response = self.client.put(
            f"/feed/post/{post['_id']}",
            data={"title": "Hi", "content": "Edited content"},
            files={"image": ("dog.jpg", PNG_BYTES, "image/jpeg")},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 422)
        self.assertEqual(list(self.api.storage.stored_objects), [post["imageUrl"]])

    def test_other_user_cannot_update_or_delete(self):
        post = self.api.create_post(self.headers)
        self.api.signup(email="eve@test.com", name="Eve")
        eve = self.api.login(email="eve@test.com")

        response = self.client.put(
            f"/feed/post/{post['_id']}",
            data={"title": "Hijacked!", "content": "Hijacked!", "image": post["imageUrl"]},
            headers=eve,
        )
        self.assertEqual(response.status_code, 403)

        response = self.client.delete(f"/feed/post/{post['_id']}", headers=eve)
        self.assertEqual(response.status_code, 403)
        self.assertIsNotNone(self.api.db.get_post(post["_id"]))

    def test_delete_post(self):
        post = self.api.create_post(self.headers)
        response = self.client.delete(f"/feed/post/{post['_id']}", headers=self.headers)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["message"], "Deleted post.")

        self.assertIsNone(self.api.db.get_post(post["_id"]))
        self.assertEqual(self.api.db.get_user(self.user_id).posts, [])
        self.assertNotIn(post["imageUrl"], self.api.storage.stored_objects)
        self.assertEqual(
            self.api.broadcaster.events[-1],
            ("posts", {"action": "delete", "post": post["_id"]}),
        )

        response = self.client.delete(f"/feed/post/{post['_id']}", headers=self.headers)
        self.assertEqual(response.status_code, 404)


class PostImageApiTests(unittest.TestCase):
    def setUp(self):
        self.api = ApiHarness()
        self.client = self.api.client
        self.api.signup()
        self.headers = self.api.login()

    def test_requires_auth(self):
        response = self.client.put(
            "/post-image", files={"image": ("cat.png", PNG_BYTES, "image/png")}
        )
        self.assertEqual(response.status_code, 401)

    def test_no_file(self):
        response = self.client.put(
            "/post-image", data={"oldPath": "images/old.png"}, headers=self.headers
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"message": "No file provided!"})

    def test_store_and_replace(self):
        self.api.storage.stored_objects["images/old.png"] = PNG_BYTES
        response = self.client.put(
            "/post-image",
            data={"oldPath": "images/old.png"},
            files={"image": ("new.png", PNG_BYTES, "image/png")},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["message"], "File stored.")
        self.assertIn(payload["filePath"], self.api.storage.stored_objects)
        self.assertNotIn("images/old.png", self.api.storage.stored_objects)


if __name__ == "__main__":
    unittest.main()
