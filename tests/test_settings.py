"""Config loading: default.toml plus profile overlay, typed accessors."""

from polymovers.config.settings import Settings, get_settings, load_config


def write(path, text):
    path.write_text(text, encoding="utf-8")


def test_missing_config_dir_gives_defaults(tmp_path):
    assert load_config(config_dir=tmp_path) == {}
    settings = get_settings(config_dir=tmp_path)
    assert settings.gamma_api_base == "https://gamma-api.polymarket.com"
    assert settings.tier_names == ["strict", "relaxed", "keyword"]
    assert settings.spread_jitter is True
    assert settings.volume_placeholder is False
    assert settings.random_seed is None
    assert settings.logging_level == "INFO"


def test_profile_is_deep_merged(tmp_path):
    write(
        tmp_path / "default.toml",
        '[polymarket]\nfetch_limit = 100\nmax_retries = 3\n\n[pipeline]\nspread_jitter = true\n',
    )
    write(tmp_path / "dev.toml", "[polymarket]\nfetch_limit = 10\n\n[pipeline]\nrandom_seed = 7\n")
    settings = get_settings("dev", tmp_path)
    assert settings.fetch_limit == 10
    assert settings.max_retries == 3
    assert settings.spread_jitter is True
    assert settings.random_seed == 7


def test_unknown_profile_is_ignored(tmp_path):
    write(tmp_path / "default.toml", "[polymarket]\nfetch_limit = 100\n")
    assert get_settings("nope", tmp_path).fetch_limit == 100


def test_process_options_from_dashboard():
    settings = Settings.from_dict(
        {"dashboard": {"exclude_resolving_soon": True, "resolving_soon_hours": 12, "minimum_volume": 50, "limit": 25}}
    )
    options = settings.process_options
    assert options.exclude_resolving_soon is True
    assert options.resolving_soon_hours == 12
    assert options.minimum_volume == 50
    assert options.minimum_movement == 0
    assert options.limit == 25
    assert Settings().process_options.limit is None


def test_category_keywords():
    settings = Settings.from_dict({"categories": {"keywords": {"science": ["nasa", "rocket"]}}})
    assert settings.category_keywords == {"science": ["nasa", "rocket"]}
    assert Settings().category_keywords == {}


def test_logging_level_num():
    assert Settings.from_dict({"logging": {"level": "debug"}}).logging_level_num == 10
    assert Settings.from_dict({"logging": {"level": "chatty"}}).logging_level_num == 20


def test_exclude_inactive_option():
    assert Settings.from_dict({"dashboard": {"exclude_inactive": True}}).process_options.exclude_inactive is True
    assert Settings().process_options.exclude_inactive is False
