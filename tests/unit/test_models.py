"""Tests for styleforge.core.models — caption state and training state machine."""

from __future__ import annotations

import pytest

from styleforge.core.models import (
    FAILED_CAPTION,
    PENDING_CAPTION,
    CaptionState,
    ReferenceImage,
    TrainingPollResult,
    TrainingStatus,
)


class TestCaptionState:
    """Stored caption text maps onto the tagged caption state."""

    def test_pending_sentinel(self):
        assert CaptionState.from_stored(PENDING_CAPTION) is CaptionState.PENDING

    def test_null_is_pending(self):
        assert CaptionState.from_stored(None) is CaptionState.PENDING

    def test_failed_caption(self):
        assert CaptionState.from_stored(FAILED_CAPTION) is CaptionState.FAILED

    def test_free_text_is_captioned(self):
        assert CaptionState.from_stored("A cat in watercolor") is CaptionState.CAPTIONED

    def test_reference_image_hides_sentinel(self):
        """A pending image exposes no caption text."""
        image = ReferenceImage.from_stored(1, "p1", "a.png", caption=PENDING_CAPTION)
        assert image.caption is None
        assert image.caption_state is CaptionState.PENDING

    def test_reference_image_keeps_caption(self):
        image = ReferenceImage.from_stored(2, "p1", "b.png", caption="A cat in ink")
        assert image.caption == "A cat in ink"
        assert image.to_dict()["caption_state"] == "captioned"


class TestTrainingStatus:
    """Verify the training state machine."""

    def test_null_is_none(self):
        assert TrainingStatus.from_stored(None) is TrainingStatus.NONE
        assert TrainingStatus.from_stored("") is TrainingStatus.NONE

    def test_unknown_value_rejected(self):
        with pytest.raises(ValueError):
            TrainingStatus.from_stored("exploded")

    @pytest.mark.parametrize(
        "source",
        [TrainingStatus.NONE, TrainingStatus.FAILED, TrainingStatus.COMPLETED],
    )
    def test_can_start_training(self, source):
        assert source.can_transition_to(TrainingStatus.TRAINING)

    def test_training_cannot_restart(self):
        assert not TrainingStatus.TRAINING.can_transition_to(TrainingStatus.TRAINING)

    def test_training_reaches_terminal_states(self):
        assert TrainingStatus.TRAINING.can_transition_to(TrainingStatus.COMPLETED)
        assert TrainingStatus.TRAINING.can_transition_to(TrainingStatus.FAILED)

    def test_no_skipping_training(self):
        assert not TrainingStatus.NONE.can_transition_to(TrainingStatus.COMPLETED)
        assert not TrainingStatus.FAILED.can_transition_to(TrainingStatus.COMPLETED)

    def test_terminal_states(self):
        assert TrainingStatus.COMPLETED.is_terminal
        assert TrainingStatus.FAILED.is_terminal
        assert not TrainingStatus.TRAINING.is_terminal
        assert not TrainingStatus.NONE.is_terminal


class TestTrainingPollResult:
    def test_to_dict_omits_unset_fields(self):
        result = TrainingPollResult(status=TrainingStatus.TRAINING, logs="step 10")
        assert result.to_dict() == {"status": "training", "logs": "step 10"}

    def test_to_dict_completed(self):
        result = TrainingPollResult(status=TrainingStatus.COMPLETED, version="v123")
        assert result.to_dict() == {"status": "completed", "version": "v123"}
