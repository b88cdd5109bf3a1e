from g7kaih.services.object_store import SupabaseObjectStore, object_key


class FakeBucket:
    def __init__(self):
        self.uploads = []

    def upload(self, path, data, options):
        self.uploads.append((path, data, options))

    def get_public_url(self, path):
        return f"https://storage.test/public/{path}"


class FakeStorage:
    def __init__(self):
        self.bucket = FakeBucket()
        self.names = []

    def from_(self, name):
        self.names.append(name)
        return self.bucket


class FakeClient:
    def __init__(self):
        self.storage = FakeStorage()


def test_object_key_layout():
    assert object_key("Pagi.JPG", "/g7-aktivitas/act-1/", token="abc") == "g7-aktivitas/act-1/abc-Pagi.jpg"
    assert object_key("", "g7-aktivitas", token="abc") == "g7-aktivitas/abc-file"


def test_same_name_in_same_folder_never_collides():
    keys = {object_key("image.jpg", "g7-aktivitas/act-1") for _ in range(50)}
    assert len(keys) == 50


def test_upload_does_not_overwrite_existing_objects():
    client = FakeClient()
    stored = SupabaseObjectStore(client, "aktivitas").store(b"x", "image.jpg", "g7-aktivitas/act-1", "image/jpeg")

    path, data, options = client.storage.bucket.uploads[0]
    assert client.storage.names == ["aktivitas"]
    assert path == stored.public_id
    assert path.startswith("g7-aktivitas/act-1/")
    assert options == {"content-type": "image/jpeg"}
    assert "upsert" not in options
    assert stored.url == f"https://storage.test/public/{path}"
