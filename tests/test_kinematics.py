"""Tests for kinematic tree construction."""

import json
from pathlib import Path

import jax
import pytest

from onshape_urdf.core import Assembly, Box, Element, Mesh, RobotModel
from onshape_urdf.io import map_assembly_response
from onshape_urdf.kinematics import (
    BASE_LINK,
    appearance_color,
    build_materials,
    build_robot_model,
    joint_origin,
)
from onshape_urdf.parts import extract_parts

FIXTURES = Path(__file__).parent / "fixtures"


def chain_assembly(n):
    elements = tuple(Element(id=f"e{i}", name=f"Part {i}") for i in range(n))
    return Assembly(id="asm", name="Chain Robot", elements=elements)


@pytest.fixture
def fixture_robot():
    payload = json.loads((FIXTURES / "assembly.json").read_text())
    assembly = map_assembly_response(payload, "asm")
    parts = extract_parts(assembly)
    return build_robot_model(assembly, parts, {"MShoulder": b"stl-bytes"})


@pytest.mark.parametrize("n", [1, 2, 5])
def test_n_parts_give_n_links_and_n_minus_one_joints(n):
    assembly = chain_assembly(n)
    robot = build_robot_model(assembly, extract_parts(assembly))

    assert isinstance(robot, RobotModel)
    assert len(robot.links) == n
    assert len(robot.joints) == n - 1
    assert robot.links[0].name == BASE_LINK
    for i, joint in enumerate(robot.joints, start=1):
        assert joint.type == "fixed"
        assert joint.parent == robot.links[i - 1].name
        assert joint.child == robot.links[i].name
        assert joint.axis.xyz == (0, 0, 1)
        assert joint.limit is None


def test_chain_names(fixture_robot):
    assert fixture_robot.name == "gripper_arm"
    assert fixture_robot.link_names == (
        "base_link", "link_mshoulder", "link_element_occ_elbow", "link_mgripper")
    assert fixture_robot.joint_names == (
        "joint_mshoulder", "joint_element_occ_elbow", "joint_mgripper")
    assert fixture_robot.joints[0].parent == "base_link"
    assert fixture_robot.joints[2].parent == "link_element_occ_elbow"


def test_joint_origin_uses_row_major_translation(fixture_robot):
    shoulder = fixture_robot.joints[0]
    assert shoulder.origin.xyz == (0.5, 0.25, 1.0)
    assert shoulder.origin.rpy == (0, 0, 0)
    # No transform on the gripper occurrence
    assert fixture_robot.joints[2].origin.xyz == (0.0, 0.0, 0.0)


def test_joint_origin_with_affine_block():
    element = Element(id="e", name="E", transform=(1, 0, 0, 7, 0, 1, 0, 8, 0, 0, 1, 9))
    assert joint_origin(element).xyz == (7.0, 8.0, 9.0)


def test_mesh_only_for_downloaded_parts(fixture_robot):
    visuals = [link.visual.geometry for link in fixture_robot.links]
    assert isinstance(visuals[1], Mesh)
    assert all(isinstance(g, Box) for i, g in enumerate(visuals) if i != 1)
    assert all(isinstance(link.collision.geometry, Box) for link in fixture_robot.links)


def test_materials_deduplicated_in_first_seen_order(fixture_robot):
    assert [m.name for m in fixture_robot.materials] == ["anodized_blue", "matte_black"]
    base, shoulder = fixture_robot.links[:2]
    assert base.visual.material == shoulder.visual.material == fixture_robot.materials[0]
    assert fixture_robot.links[3].visual.material is None


def test_material_colors_are_stable():
    color = appearance_color("Anodized Blue")
    assert color == appearance_color("Anodized Blue")
    assert len(color) == 4 and color[3] == 1
    assert all(0 <= c <= 1 for c in color[:3])


def test_material_names_collide_after_sanitizing():
    assembly = Assembly(id="a", name="A", elements=(
        Element(id="1", name="one", appearance="Red Paint"),
        Element(id="2", name="two", appearance="Red-Paint"),
    ))
    materials = build_materials(extract_parts(assembly))
    assert [m.name for m in materials.values()] == ["red_paint", "red_paint_2"]


def test_duplicate_part_names_get_unique_links():
    assembly = Assembly(id="a", name="A", elements=(
        Element(id="1", name="Bolt"),
        Element(id="2", name="Bolt"),
        Element(id="3", name="Bolt"),
    ))
    robot = build_robot_model(assembly, extract_parts(assembly))
    assert robot.link_names == ("base_link", "link_bolt", "link_bolt_2")
    assert robot.joint_names == ("joint_bolt", "joint_bolt_2")


def test_part_count_must_match_elements():
    assembly = chain_assembly(3)
    with pytest.raises(ValueError):
        build_robot_model(assembly, extract_parts(assembly)[:2])


def test_robot_model_is_pytree(fixture_robot):
    """RobotModel flattens and rebuilds like any JAX PyTree."""
    leaves, treedef = jax.tree_util.tree_flatten(fixture_robot)
    rebuilt = jax.tree_util.tree_unflatten(treedef, leaves)
    assert rebuilt == fixture_robot
    assert rebuilt.link_names == fixture_robot.link_names
