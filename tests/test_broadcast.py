# Tests for batch broadcasting of image operations
"""
Tests for BatchBroadcaster: list inputs are processed item by item with
identical parameters while metadata is preserved.
"""

import numpy as np
import pytest

from lumina.catalog import NodeType
from lumina.graph import Node
from lumina.operations import BatchBroadcaster, get_operation

from conftest import solid


async def run(node_type, inputs, params=None):
    node = Node.create('n1', node_type)
    if params:
        node.params = {**node.params, **params}
    return await get_operation(node_type).run(inputs, node.params, node)


@pytest.mark.asyncio
class TestBroadcast:
    """Test vectorization over batches."""

    async def test_batch_length_preserved(self):
        batch = [{'name': f'img{i}', 'image': solid((100, 100, 100), 4, 4)} for i in range(5)]
        result = await run(NodeType.COLOR_CORRECTION, {'image': batch}, {'temperature': 10})
        assert len(result['batch']) == 5
        assert result['image'] is result['batch']
        for source, item in zip(batch, result['batch']):
            assert item['name'] == source['name']
            assert tuple(item['image'][0, 0]) == (110, 100, 90, 255)

    async def test_each_item_matches_single_run(self):
        images = [solid((i * 40, 10, 200), 6, 6) for i in range(3)]
        params = {'brightness': 12, 'saturation': 1.4}
        batch_result = await run(NodeType.COLOR_CORRECTION, {'image': images}, params)
        for image, item in zip(images, batch_result['batch']):
            single = await run(NodeType.COLOR_CORRECTION, {'image': image}, params)
            assert np.array_equal(item['image'], single['image'])

    async def test_bare_items_wrapped(self):
        result = await run(NodeType.CROP, {'image': [solid((1, 1, 1))]}, {'width': 2, 'height': 3})
        assert list(result['batch'][0]) == ['image']
        assert result['batch'][0]['image'].shape == (3, 2, 4)

    async def test_empty_batch(self):
        assert await run(NodeType.BLUR, {'image': []}) == {'batch': [], 'image': []}

    async def test_single_image(self, red_image):
        result = await run(NodeType.BLUR, {'image': red_image}, {'radius': 0})
        assert list(result) == ['image']
        assert np.array_equal(result['image'], red_image)

    async def test_dict_item_as_single_input(self, red_image):
        """A single batch item (from a batch inspector) is unwrapped."""
        result = await run(NodeType.BLUR, {'image': {'image': red_image, 'name': 'x'}}, {'radius': 0})
        assert np.array_equal(result['image'], red_image)

    async def test_text_key_overrides_text_per_item(self):
        blank = solid((0, 0, 0), 80, 60)
        batch = [{'name': 'A', 'image': blank}, {'image': blank}]
        result = await run(NodeType.ADD_TEXT, {'image': batch}, {'text': '', 'textKey': 'name', 'size': 30, 'y': 5})
        first, second = result['batch']
        assert first['image'][..., :3].max() > 0
        # no 'name' field: falls back to the (empty) text parameter
        assert np.array_equal(second['image'], blank)

    async def test_text_key_index(self):
        blank = solid((0, 0, 0), 80, 60)
        result = await run(NodeType.ADD_TEXT, {'image': [blank, blank]}, {'text': '', 'textKey': 'index', 'y': 5})
        assert all(item['image'][..., :3].max() > 0 for item in result['batch'])

    async def test_blend_broadcasts_base(self):
        bases = [solid((200, 100, 50), 2, 2), solid((100, 100, 100), 2, 2)]
        layer = solid((128, 128, 128), 2, 2)
        result = await run(NodeType.IMAGE_BLEND, {'base': bases, 'layer': layer}, {'mode': 'multiply'})
        assert tuple(result['batch'][0]['image'][0, 0]) == (100, 50, 25, 255)
        assert tuple(result['batch'][1]['image'][0, 0]) == (50, 50, 50, 255)

    async def test_primary_input_order(self):
        """image is preferred over input and base."""
        a, b = solid((1, 1, 1)), solid((2, 2, 2))
        assert BatchBroadcaster.primary({'base': b, 'image': a}) is a
        assert BatchBroadcaster.primary({'base': b}) is b
        assert BatchBroadcaster.primary({}) is None
