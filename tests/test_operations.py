# Tests for node operations
"""
Tests for the per-node-type operations, called directly with resolved inputs.
"""

import numpy as np
import pytest

from lumina.catalog import NodeType
from lumina.errors import OperationError
from lumina.graph import Node
from lumina.imageops import to_data_url
from lumina.operations import OPERATION_REGISTRY, get_operation, resolve_param, verify_registry
from lumina.operations.base import as_bool
from lumina.sandbox import SandboxError

from conftest import solid


async def run(node_type, inputs=None, params=None, **node_fields):
    """Run the operation of a freshly created node."""
    node = Node.create('n1', node_type, **node_fields)
    if params:
        node.params = {**node.params, **params}
    return await get_operation(node_type).run(inputs or {}, node.params, node)


class TestRegistry:
    """Test operation registration."""

    def test_every_type_registered(self):
        assert set(OPERATION_REGISTRY) == set(NodeType)
        verify_registry()

    def test_missing_type_detected(self, monkeypatch):
        monkeypatch.delitem(OPERATION_REGISTRY, NodeType.BLUR)
        with pytest.raises(RuntimeError, match='blur'):
            verify_registry()


class TestResolveParam:
    """Test the parameter-override rule."""

    def test_numeric_input_overrides(self):
        assert resolve_param({'radius': 9}, {'radius': 2}, 'radius') == 9

    def test_numeric_string_input_overrides(self):
        assert resolve_param({'radius': '4.5'}, {'radius': 2}, 'radius') == 4.5

    def test_non_numeric_input_ignored(self):
        assert resolve_param({'radius': 'abc'}, {'radius': 2}, 'radius') == 2
        assert resolve_param({'radius': [1, 2]}, {'radius': 2}, 'radius') == 2
        assert resolve_param({'radius': True}, {'radius': 2}, 'radius') == 2

    def test_default_when_unset(self):
        assert resolve_param({}, {}, 'radius', 5) == 5

    def test_as_bool(self):
        assert as_bool('false') is False
        assert as_bool(1) is True


@pytest.mark.asyncio
class TestSources:
    """Test source operations."""

    async def test_number(self):
        assert await run(NodeType.NUMBER, params={'value': 3}) == {'value': 3}

    async def test_number_input_override(self):
        assert await run(NodeType.NUMBER, {'value': 8}, {'value': 3}) == {'value': 8}

    async def test_image_input_decodes_data_url(self):
        image = solid((1, 2, 3), 4, 4)
        result = await run(NodeType.IMAGE_INPUT, params={'fileData': to_data_url(image)})
        assert np.array_equal(result['image'], image)

    async def test_image_input_without_file(self):
        assert await run(NodeType.IMAGE_INPUT) == {'image': None}

    async def test_batch_input(self):
        files = [{'name': 'a.png', 'image': solid((0, 0, 0))}]
        result = await run(NodeType.BATCH_INPUT, params={'files': files})
        assert result['batch'] == files

    async def test_table_rows(self):
        result = await run(NodeType.TABLE)
        assert result == {'data': [['id', 'text'], ['1', 'hello']]}

    async def test_data_wins_over_rows(self):
        result = await run(NodeType.TABLE, params={'data': [['x']]})
        assert result == {'data': [['x']]}


@pytest.mark.asyncio
class TestMath:
    """Test the math node."""

    async def test_labels_bind_inputs(self):
        result = await run(
            NodeType.MATH, {'a': 2, 'b': 3}, code='return a + b;',
        )
        assert result == {'result': 5}

    async def test_labels_differ_from_socket_ids(self):
        result = await run(
            NodeType.MATH, {'in1': 4},
            code='return width * 2',
            dynamic_inputs=[{'id': 'in1', 'label': 'width'}],
        )
        assert result == {'result': 8}

    async def test_default_code(self):
        assert await run(NodeType.MATH, {'a': 1}) == {'result': 1}

    async def test_error_raised(self):
        with pytest.raises(SandboxError):
            await run(NodeType.MATH, code='return nope')


@pytest.mark.asyncio
class TestBatchOperations:
    """Test batch convert, associate, sort and info."""

    async def test_convert(self):
        image = solid((0, 0, 0))
        result = await run(
            NodeType.BATCH_CONVERT,
            {'s1': image, 's2': 5},
            dynamic_inputs=[{'id': 's1', 'label': 'first'}, {'id': 's2', 'label': 'second'},
                            {'id': 's3', 'label': 'unconnected'}],
        )
        batch = result['batch']
        assert len(batch) == 2
        assert batch[0]['name'] == 'first' and batch[0]['image'] is image
        assert batch[1] == {'name': 'second', 'value': 5}

    async def test_associate_by_name(self):
        batch = [{'name': 'a.png'}, {'name': 'b.png'}, {'name': 'c.png'}]
        table = [['id', 'caption'], ['a.png', 'Alpha'], ['c.png', 'Gamma']]
        result = await run(
            NodeType.BATCH_ASSOCIATE, {'batch': batch, 'data': table},
            {'batchKey': 'name', 'tableKey': 'id'},
        )
        assert result['batch'] == [
            {'name': 'a.png', 'id': 'a.png', 'caption': 'Alpha'},
            {'name': 'b.png'},
            {'name': 'c.png', 'id': 'c.png', 'caption': 'Gamma'},
        ]

    async def test_associate_by_index_and_fallback_column(self):
        batch = [{'name': 'x'}, {'name': 'y'}]
        table = [['pos', 'label'], ['1', 'second']]
        result = await run(
            NodeType.BATCH_ASSOCIATE, {'batch': batch, 'data': table},
            {'batchKey': 'index', 'tableKey': 'missing'},
        )
        assert result['batch'] == [{'name': 'x'}, {'name': 'y', 'pos': '1', 'label': 'second'}]

    async def test_associate_without_table(self):
        batch = [{'name': 'x'}]
        assert await run(NodeType.BATCH_ASSOCIATE, {'batch': batch}) == {'batch': batch}

    async def test_sort_stable_with_missing_fields(self):
        batch = [{'name': 'b', 'k': 1}, {'k': 2}, {'name': 'a'}, {'name': 'b', 'k': 3}]
        result = await run(NodeType.BATCH_SORT, {'batch': batch}, {'sortBy': 'name', 'direction': 'asc'})
        assert result['batch'] == [{'k': 2}, {'name': 'a'}, {'name': 'b', 'k': 1}, {'name': 'b', 'k': 3}]

    async def test_sort_descending_is_stable(self):
        batch = [{'name': 'b', 'k': 1}, {'name': 'a'}, {'name': 'b', 'k': 3}]
        result = await run(NodeType.BATCH_SORT, {'batch': batch}, {'sortBy': 'name', 'direction': 'desc'})
        assert result['batch'] == [{'name': 'b', 'k': 1}, {'name': 'b', 'k': 3}, {'name': 'a'}]

    async def test_info_clamps_index(self):
        batch = [{'name': 'a', 'value': 1}, {'name': 'b', 'value': 2}]
        result = await run(NodeType.BATCH_INFO, {'batch': batch}, {'index': 10})
        assert result == {'count': 2, 'item': 2, 'meta': batch[1]}

    async def test_info_empty_batch(self):
        assert await run(NodeType.BATCH_INFO, {'batch': []}) == {'count': 0, 'item': None, 'meta': None}

    async def test_info_prefers_image(self):
        image = solid((9, 9, 9))
        result = await run(NodeType.BATCH_INFO, {'batch': [{'image': image, 'value': 3}]})
        assert result['item'] is image


@pytest.mark.asyncio
class TestImageGrid:
    """Test the grid node."""

    async def test_grid_from_mixed_items(self):
        batch = [{'name': 'a', 'image': solid((255, 0, 0), 10, 10)}, solid((0, 255, 0), 10, 10), {'name': 'no image'}]
        result = await run(NodeType.IMAGE_GRID, {'batch': batch}, {'cols': 2, 'gap': 0, 'label': False})
        assert result['image'].shape == (10, 20, 4)

    async def test_empty_batch(self):
        assert await run(NodeType.IMAGE_GRID, {'batch': []}) == {'image': None}

    async def test_undecodable_items_skipped(self):
        batch = [{'image': 12345}, {'image': solid((1, 1, 1), 4, 4)}]
        result = await run(NodeType.IMAGE_GRID, {'batch': batch}, {'cols': 3, 'gap': 0})
        assert result['image'].shape == (4, 4 * 3, 4)


@pytest.mark.asyncio
class TestPixelOperations:
    """Test single-image pixel operations."""

    async def test_color_correction(self, gray_image):
        result = await run(NodeType.COLOR_CORRECTION, {'image': gray_image}, {'temperature': 10})
        assert tuple(result['image'][0, 0]) == (110, 100, 90, 255)

    async def test_crop(self):
        image = solid((5, 5, 5), 20, 20)
        result = await run(NodeType.CROP, {'image': image}, {'x': 0, 'y': 0, 'width': 10, 'height': 10})
        assert result['image'].shape == (10, 10, 4)

    async def test_param_override_through_input(self):
        image = solid((5, 5, 5), 20, 20)
        result = await run(NodeType.CROP, {'image': image, 'width': 4}, {'width': 10, 'height': 10})
        assert result['image'].shape == (10, 4, 4)

    async def test_box_blur(self):
        image = np.zeros((1, 3, 4), dtype=np.uint8)
        image[0, 1] = 90
        result = await run(NodeType.BLUR, {'image': image}, {'type': 'box', 'radius': 1})
        assert (result['image'] == 30).all()

    async def test_transform_invalid_scale(self, red_image):
        with pytest.raises(OperationError):
            await run(NodeType.TRANSFORM_IMAGE, {'image': red_image}, {'scale': 0})

    async def test_add_text_uses_text_input(self):
        image = solid((0, 0, 0), 100, 60)
        with_input = await run(NodeType.ADD_TEXT, {'image': image, 'text': 'W'}, {'text': '', 'y': 5})
        empty = await run(NodeType.ADD_TEXT, {'image': image}, {'text': ''})
        assert with_input['image'][..., :3].max() > 0
        assert np.array_equal(empty['image'], image)

    async def test_blend_layer_only(self):
        layer = solid((0, 0, 255), 3, 3)
        result = await run(NodeType.IMAGE_BLEND, {'layer': layer})
        assert np.array_equal(result['image'], layer)

    async def test_blend_unknown_mode(self, red_image):
        with pytest.raises(OperationError):
            await run(NodeType.IMAGE_BLEND, {'base': red_image, 'layer': red_image}, {'mode': 'sparkle'})

    async def test_no_image_gives_empty_output(self):
        assert await run(NodeType.BLUR, {}) == {}

    async def test_invalid_image_raises(self):
        with pytest.raises(OperationError):
            await run(NodeType.BLUR, {'image': 'data:image/png;base64,bm90IGFuIGltYWdl'})


@pytest.mark.asyncio
class TestDisplay:

    async def test_output_pass_through(self):
        assert await run(NodeType.OUTPUT, {'input': 4}) == {'value': 4}

    async def test_output_without_input(self):
        assert await run(NodeType.OUTPUT, {}) == {'value': None}

    async def test_json_viewer(self):
        assert await run(NodeType.JSON_VIEWER, {'data': {'a': 1}}) == {'data': {'a': 1}}
