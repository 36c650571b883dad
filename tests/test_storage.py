import pytest

from app.storefront.storage import LocalStorage, S3Storage, StorageError, storage_from_config


def test_local_storage_round_trip(tmp_path):
    st = LocalStorage(root=tmp_path)
    key = "payment-proofs/2026/01/ORD-1/abc-proof.png"
    st.put_bytes(key, b"png", content_type="image/png")
    assert st.exists(key)
    with st.open(key) as f:
        assert f.read() == b"png"
    st.delete(key)
    assert not st.exists(key)


def test_local_storage_rejects_escaping_keys(tmp_path):
    st = LocalStorage(root=tmp_path / "root")
    with pytest.raises(StorageError):
        st.put_bytes("../outside.txt", b"x")


def test_missing_object(tmp_path):
    with pytest.raises(StorageError, match="No such object"):
        LocalStorage(root=tmp_path).open("nope.png")


def test_storage_from_config(tmp_path):
    st = storage_from_config({"STORAGE_BACKEND": "local", "STORAGE_ROOT": str(tmp_path)})
    assert isinstance(st, LocalStorage)
    assert st.root == tmp_path

    s3 = storage_from_config({"STORAGE_BACKEND": "s3", "S3_BUCKET": "proofs", "S3_ENDPOINT": "nyc3.example.com"})
    assert isinstance(s3, S3Storage)
    assert s3.bucket == "proofs"
    assert s3.region == "nyc3"
