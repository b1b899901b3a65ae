"""Test basic project structure and imports."""


def test_package_version():
    """Test that package version is accessible."""
    from number_pool_service import __version__
    assert __version__ == "0.1.0"


def test_basic_imports():
    """Test that basic modules can be imported."""
    import number_pool_service.models
    import number_pool_service.services
    import number_pool_service.repositories
    import number_pool_service.api
    import number_pool_service.config

    assert number_pool_service.services.NumberPoolEngine is not None
    assert number_pool_service.repositories.RedisConnectionManager is not None
