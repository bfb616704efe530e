"""
Tests for label -> entity mapping and world placement.
"""

import math

import numpy as np
import pytest

from models.config import DEFAULT_ENTITY_TYPE
from models.detection import BoundingBox, Detection
from models.spawn import CameraPose
from spawning.policy import SpawnPolicy
from spawning.sink import LoggingSpawnSink


class TestEntityMapping:

    @pytest.mark.parametrize(
        "label,entity",
        [
            ("plastic_bottle", "DragonNightmare_Blue"),
            ("plastic_bag", "DragonNightmare_Green"),
            ("can", "DragonSoulEater_Blue"),
            ("metal_waste", "DragonSoulEater_Red"),
            ("paper", "DragonTerrorBringer_Purple"),
            ("cardboard", "DragonTerrorBringer_Blue"),
            ("glass", "DragonUsurper_Green"),
            ("organic", "DragonUsurper_Purple"),
        ],
    )
    def test_default_table(self, label, entity):
        assert SpawnPolicy().map_label_to_entity_type(label) == entity

    def test_unknown_label_uses_default(self):
        assert SpawnPolicy().map_label_to_entity_type("tyre") == DEFAULT_ENTITY_TYPE

    def test_custom_table(self):
        policy = SpawnPolicy(entity_map={"can": "Goblin"}, default_entity_type="Slime")

        assert policy.map_label_to_entity_type("can") == "Goblin"
        assert policy.map_label_to_entity_type("paper") == "Slime"


class TestWorldPosition:

    def test_centered_bbox_lands_straight_ahead(self):
        policy = SpawnPolicy(distance=5.0)
        bbox = BoundingBox(0.25, 0.25, 0.5, 0.5)

        assert policy.compute_world_position(bbox, CameraPose()) == pytest.approx((0.0, 0.0, 5.0))

    def test_distance_from_camera_plane(self):
        policy = SpawnPolicy(distance=3.0)
        pose = CameraPose(position=(1.0, 2.0, 3.0))

        x, y, z = policy.compute_world_position(BoundingBox(0.0, 0.0, 0.2, 0.2), pose)

        assert z == pytest.approx(6.0)

    def test_right_edge_maps_to_frustum_edge(self):
        policy = SpawnPolicy(distance=2.0)
        pose = CameraPose(fov_deg=90.0, viewport_width=1000, viewport_height=1000)

        x, y, z = policy.compute_world_position(BoundingBox(1.0, 0.5, 0.0, 0.0), pose)

        # tan(45 deg) * 2 = 2
        assert x == pytest.approx(2.0)
        assert y == pytest.approx(0.0)

    def test_top_of_image_is_positive_y(self):
        policy = SpawnPolicy(distance=5.0)

        _, y, _ = policy.compute_world_position(BoundingBox(0.4, 0.0, 0.2, 0.2), CameraPose())

        assert y > 0

    def test_bottom_of_image_is_negative_y(self):
        policy = SpawnPolicy(distance=5.0)

        _, y, _ = policy.compute_world_position(BoundingBox(0.4, 0.8, 0.2, 0.2), CameraPose())

        assert y < 0

    def test_top_edge_maps_to_frustum_top(self):
        policy = SpawnPolicy(distance=2.0)
        pose = CameraPose(fov_deg=90.0, viewport_width=1000, viewport_height=1000)

        _, y, _ = policy.compute_world_position(BoundingBox(0.5, 0.0, 0.0, 0.0), pose)

        assert y == pytest.approx(2.0)

    def test_rotation_is_applied(self):
        # Camera turned to look down +X.
        rotation = np.array([[0.0, 0.0, 1.0], [0.0, 1.0, 0.0], [-1.0, 0.0, 0.0]])
        pose = CameraPose(rotation=rotation)

        position = SpawnPolicy(distance=5.0).compute_world_position(BoundingBox(0.25, 0.25, 0.5, 0.5), pose)

        assert position == pytest.approx((5.0, 0.0, 0.0))

    def test_decide(self):
        decision = SpawnPolicy().decide(Detection("glass", 0.75), CameraPose())

        assert decision.entity_type == "DragonUsurper_Green"
        assert decision.label == "glass"
        assert decision.confidence == 0.75
        assert decision.to_dict()["world_position"] == pytest.approx([0.0, 0.0, 5.0])


class TestLoggingSpawnSink:

    def test_history_is_bounded(self):
        sink = LoggingSpawnSink(max_history=2)
        policy = SpawnPolicy()
        for label in ("can", "paper", "glass"):
            sink.spawn(policy.decide(Detection(label, 0.9), CameraPose()))

        assert sink.total == 3
        assert [d.label for d in sink.recent()] == ["paper", "glass"]

    def test_collected_counts_per_entity_type(self):
        sink = LoggingSpawnSink()

        sink.on_collected("DragonNightmare_Blue")
        sink.on_collected("DragonUsurper_Green")
        sink.on_collected("DragonNightmare_Blue")

        assert sink.collected() == {"DragonNightmare_Blue": 2, "DragonUsurper_Green": 1}
        assert sink.total == 0

    def test_collected_snapshot_is_a_copy(self):
        sink = LoggingSpawnSink()
        sink.on_collected("DragonSoulEater_Red")

        sink.collected()["DragonSoulEater_Red"] = 99

        assert sink.collected() == {"DragonSoulEater_Red": 1}

    def test_aspect(self):
        pose = CameraPose(viewport_width=1080, viewport_height=1920)

        assert pose.aspect == pytest.approx(1080 / 1920)
        assert math.isclose(float(pose.forward[2]), 1.0)
