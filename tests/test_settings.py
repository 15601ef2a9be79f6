import json

from settings import ServiceConfig, load_config


def test_missing_file_gives_defaults(tmp_path):
    config = load_config(tmp_path / "config.json", environ={})

    assert config == ServiceConfig()
    assert config.home_country_code == "id"
    assert config.coordinate_convention == "mwl"
    assert config.location_convention == "kemenag"


def test_file_values_and_environment_overrides(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "home_country_code": "MY",
                "aladhan_base_url": "https://aladhan.test/",
                "request_timeout": 4,
                "image_allowed_hosts": ["Images.Unsplash.com"],
            }
        ),
        encoding="utf-8",
    )

    config = load_config(path, environ={"PRAYER_SERVICE_REQUEST_TIMEOUT": "2.5", "PORT": "9000"})

    assert config.home_country_code == "my"
    assert config.aladhan_base_url == "https://aladhan.test"
    assert config.request_timeout == 2.5
    assert config.port == 9000
    assert config.image_allowed_hosts == ("images.unsplash.com",)


def test_invalid_values_fall_back_to_defaults(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"request_timeout": "soon", "port": "http", "colour": "green"}), encoding="utf-8")

    config = load_config(path, environ={})

    assert config.request_timeout == ServiceConfig().request_timeout
    assert config.port == ServiceConfig().port


def test_comma_separated_hosts_from_environment(tmp_path):
    config = load_config(
        tmp_path / "config.json",
        environ={"PRAYER_SERVICE_IMAGE_ALLOWED_HOSTS": "images.unsplash.com, cdn.example.org"},
    )

    assert config.image_allowed_hosts == ("images.unsplash.com", "cdn.example.org")
