"""
Test cases for configuration validation.
"""

from unittest.mock import patch

from semsearch.core import config


def test_default_config_is_valid():
    """Test that the shipped defaults validate cleanly."""
    with patch.object(config, "ENCODER_PROVIDER", "sentence_transformers"), \
         patch.object(config, "VECTOR_PROVIDER", "faiss"), \
         patch.object(config, "INDEX_QUANTIZATION", "f16"), \
         patch.object(config, "INDEX_CONNECTIVITY", 32), \
         patch.object(config, "RESULT_LIMIT", 100), \
         patch.object(config, "DEBOUNCE_MS", 100), \
         patch.object(config, "LOADER_WORKERS", 4):
        assert config.validate_search_config() == []


def test_invalid_values_are_reported():
    """Test that bad settings are returned as issues."""
    with patch.object(config, "VECTOR_PROVIDER", "annoy"), \
         patch.object(config, "RESULT_LIMIT", 0):
        issues = config.validate_search_config()

    assert "Invalid VECTOR_PROVIDER: annoy" in issues
    assert "RESULT_LIMIT must be >= 1" in issues


def test_differing_model_names_only_warn():
    """Test that mismatched encoder checkpoints are logged, not returned as issues."""
    with patch.object(config, "ENCODER_PROVIDER", "sentence_transformers"), \
         patch.object(config, "TEXT_MODEL_NAME", "clip-ViT-B-32"), \
         patch.object(config, "IMAGE_MODEL_NAME", "clip-ViT-L-14"), \
         patch.object(config.logger, "warning") as mock_warning:
        issues = config.validate_search_config()

    assert not any("MODEL_NAME" in issue for issue in issues)
    mock_warning.assert_called_once()
    assert "differ" in mock_warning.call_args[0][0]
