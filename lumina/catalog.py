# Lumina - Node Catalog
"""
Static catalog of node types.

Each node type declares its input/output sockets, default parameters,
UI hints for the inspector and, for variable-arity nodes, its default code
and dynamic inputs. The catalog is read by both the engine and the editor.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
import copy


class NodeType(str, Enum):
    """Closed set of node kinds understood by the engine."""
    IMAGE_INPUT = 'imageInput'
    BATCH_INPUT = 'batchInput'
    NUMBER = 'number'
    MATH = 'math'
    TABLE = 'table'
    TEXT_SOURCE = 'textSource'
    BATCH_CONVERT = 'batchConvert'
    BATCH_ASSOCIATE = 'batchAssociate'
    BATCH_SORT = 'batchSort'
    BATCH_INFO = 'batchInfo'
    IMAGE_GRID = 'imageGrid'
    ADD_TEXT = 'addText'
    BLUR = 'blur'
    COLOR_CORRECTION = 'colorCorrection'
    CROP = 'crop'
    TRANSFORM_IMAGE = 'transformImage'
    IMAGE_BLEND = 'imageBlend'
    OUTPUT = 'output'
    JSON_VIEWER = 'jsonViewer'


class SocketKind(str, Enum):
    """Value kind carried by a socket."""
    IMAGE = 'image'
    NUMBER = 'number'
    TEXT = 'text'
    BATCH = 'batch'
    ANY = 'any'


@dataclass(frozen=True)
class SocketDef:
    """A static input or output socket of a node type."""

    id: str
    label: str
    kind: SocketKind = SocketKind.ANY

    def to_dict(self) -> dict[str, Any]:
        return {'id': self.id, 'label': self.label, 'kind': self.kind.value}


@dataclass
class ParamConfig:
    """Inspector hint for a single parameter (not used by the engine)."""

    key: str
    type: str  # 'int', 'float', 'text', 'select', 'boolean', 'color', 'textarea'
    label: str
    min_value: float | None = None
    max_value: float | None = None
    step: float | None = None
    options: list[str] | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary (skips unset values)."""
        result = {'key': self.key, 'type': self.type, 'label': self.label}
        if self.min_value is not None:
            result['min'] = self.min_value
        if self.max_value is not None:
            result['max'] = self.max_value
        if self.step is not None:
            result['step'] = self.step
        if self.options:
            result['options'] = self.options
        return result


@dataclass
class NodeDefinition:
    """Catalog entry describing one node type.

    :ivar type: The node type this entry describes
    :ivar label: Display name
    :ivar description: One line description for the palette
    :ivar category: Palette category ('Input', 'Filter', 'Batch', ...)
    :ivar inputs: Static input sockets
    :ivar outputs: Static output sockets
    :ivar default_params: Parameters a new node starts with
    :ivar param_config: Inspector hints
    :ivar default_code: Initial code for math nodes
    :ivar default_inputs: Initial dynamic inputs as ``{'id', 'label'}`` dicts
    """
    type: NodeType
    label: str
    description: str
    category: str
    inputs: list[SocketDef] = field(default_factory=list)
    outputs: list[SocketDef] = field(default_factory=list)
    default_params: dict[str, Any] = field(default_factory=dict)
    param_config: list[ParamConfig] = field(default_factory=list)
    default_code: str | None = None
    default_inputs: list[dict[str, str]] | None = None

    def input_ids(self) -> list[str]:
        return [s.id for s in self.inputs]

    def output_ids(self) -> list[str]:
        return [s.id for s in self.outputs]

    def fresh_params(self) -> dict[str, Any]:
        """Deep copy of the default parameters."""
        return copy.deepcopy(self.default_params)

    def fresh_inputs(self) -> list[dict[str, str]]:
        """Deep copy of the default dynamic inputs (empty when undefined)."""
        return copy.deepcopy(self.default_inputs) if self.default_inputs else []

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the editor palette."""
        result = {
            'type': self.type.value,
            'label': self.label,
            'description': self.description,
            'category': self.category,
            'inputs': [s.to_dict() for s in self.inputs],
            'outputs': [s.to_dict() for s in self.outputs],
            'defaultParams': copy.deepcopy(self.default_params),
            'paramConfig': [p.to_dict() for p in self.param_config],
        }
        if self.default_code is not None:
            result['defaultCode'] = self.default_code
        if self.default_inputs is not None:
            result['defaultInputs'] = self.fresh_inputs()
        return result


def _image_io(label: str = 'Image') -> dict[str, list[SocketDef]]:
    return {
        'inputs': [SocketDef('image', 'Image', SocketKind.IMAGE)],
        'outputs': [SocketDef('image', label, SocketKind.IMAGE)],
    }


BLEND_MODES = [
    'normal', 'multiply', 'screen', 'overlay', 'darken', 'lighten',
    'color-dodge', 'color-burn', 'hard-light', 'soft-light', 'difference',
    'exclusion', 'hue', 'saturation', 'color', 'luminosity',
]

NODE_CATALOG: dict[NodeType, NodeDefinition] = {d.type: d for d in [
    # --- Inputs ---
    NodeDefinition(
        NodeType.IMAGE_INPUT, 'Input Image', 'Load a single image.', 'Input',
        outputs=[SocketDef('image', 'Image', SocketKind.IMAGE)],
    ),
    NodeDefinition(
        NodeType.BATCH_INPUT, 'Input Multiple', 'Load several images as a batch.', 'Input',
        outputs=[SocketDef('batch', 'Batch', SocketKind.BATCH)],
        default_params={'mode': 'multiple', 'files': []},
        param_config=[ParamConfig('mode', 'select', 'Mode', options=['folder', 'multiple'])],
    ),
    # --- Utility ---
    NodeDefinition(
        NodeType.NUMBER, 'Number', 'A constant number value.', 'Utility',
        inputs=[SocketDef('value', 'Value', SocketKind.NUMBER)],
        outputs=[SocketDef('value', 'Value', SocketKind.NUMBER)],
        default_params={'value': 1},
        param_config=[ParamConfig('value', 'float', 'Value', -1000, 1000, 0.1)],
    ),
    NodeDefinition(
        NodeType.MATH, 'Math / Code', 'Evaluate a small expression program.', 'Utility',
        outputs=[SocketDef('result', 'Result', SocketKind.ANY)],
        default_code="return {'result': (a or 0) + (b or 0)}",
        default_inputs=[{'id': 'a', 'label': 'a'}, {'id': 'b', 'label': 'b'}],
    ),
    # --- Batch handling ---
    NodeDefinition(
        NodeType.BATCH_CONVERT, 'Convert to Batch', 'Combine single inputs into a batch.', 'Batch',
        outputs=[SocketDef('batch', 'Batch', SocketKind.BATCH)],
        default_inputs=[],
    ),
    NodeDefinition(
        NodeType.BATCH_ASSOCIATE, 'Batch Associate Table', 'Join batch items with table rows.', 'Batch',
        inputs=[SocketDef('batch', 'Batch', SocketKind.BATCH), SocketDef('data', 'Table Data')],
        outputs=[SocketDef('batch', 'Associated Batch', SocketKind.BATCH)],
        default_params={'batchKey': 'name', 'tableKey': 'id'},
        param_config=[
            ParamConfig('batchKey', 'select', 'Batch Property (ID)', options=['name', 'index']),
            ParamConfig('tableKey', 'text', 'Table Column (ID)'),
        ],
    ),
    NodeDefinition(
        NodeType.BATCH_SORT, 'Batch Sort', 'Sort a batch by an item property.', 'Batch',
        inputs=[SocketDef('batch', 'Batch', SocketKind.BATCH)],
        outputs=[SocketDef('batch', 'Sorted', SocketKind.BATCH)],
        default_params={'sortBy': 'name', 'direction': 'asc'},
        param_config=[
            ParamConfig('sortBy', 'select', 'Sort By', options=['name', 'size', 'date']),
            ParamConfig('direction', 'select', 'Direction', options=['asc', 'desc']),
        ],
    ),
    NodeDefinition(
        NodeType.IMAGE_GRID, 'Create Image Grid', 'Merge a batch of images into a grid.', 'Batch',
        inputs=[SocketDef('batch', 'Batch', SocketKind.BATCH)],
        outputs=[SocketDef('image', 'Grid Image', SocketKind.IMAGE)],
        default_params={'cols': 3, 'gap': 10, 'label': True},
        param_config=[
            ParamConfig('cols', 'int', 'Columns', 1, 20, 1),
            ParamConfig('gap', 'int', 'Gap (px)', 0, 100, 1),
            ParamConfig('label', 'boolean', 'Show Labels'),
        ],
    ),
    NodeDefinition(
        NodeType.BATCH_INFO, 'Batch Inspector', 'Extract a batch item by index.', 'Batch',
        inputs=[SocketDef('batch', 'Batch', SocketKind.BATCH)],
        outputs=[
            SocketDef('item', 'Item'),
            SocketDef('count', 'Count', SocketKind.NUMBER),
            SocketDef('meta', 'Metadata'),
        ],
        default_params={'index': 0},
        param_config=[ParamConfig('index', 'int', 'Index', 0, 1000, 1)],
    ),
    # --- Text & data ---
    NodeDefinition(
        NodeType.TEXT_SOURCE, 'Load CSV', 'CSV rows as a data grid.', 'Text',
        outputs=[SocketDef('data', 'Data')],
        default_params={'data': []},
    ),
    NodeDefinition(
        NodeType.TABLE, 'Create Table', 'An editable data table.', 'Text',
        outputs=[SocketDef('data', 'Data')],
        default_params={'rows': [['id', 'text'], ['1', 'hello']]},
    ),
    NodeDefinition(
        NodeType.ADD_TEXT, 'Add Text on Image', 'Overlay text onto an image.', 'Text',
        inputs=[SocketDef('image', 'Image', SocketKind.IMAGE), SocketDef('text', 'Text Override', SocketKind.TEXT)],
        outputs=[SocketDef('image', 'Image', SocketKind.IMAGE)],
        default_params={
            'text': 'Lumina', 'textKey': 'none', 'x': 10, 'y': 50, 'size': 40,
            'color': '#ffffff', 'opacity': 1, 'rotation': 0,
        },
        param_config=[
            ParamConfig('text', 'text', 'Text Content'),
            ParamConfig('textKey', 'select', 'Batch Key (Override)',
                        options=['none', 'name', 'index', 'label', 'value', 'id']),
            ParamConfig('x', 'int', 'X Pos', 0, 2000, 10),
            ParamConfig('y', 'int', 'Y Pos', 0, 2000, 10),
            ParamConfig('size', 'int', 'Font Size', 8, 200, 1),
            ParamConfig('color', 'color', 'Color'),
            ParamConfig('opacity', 'float', 'Opacity', 0, 1, 0.1),
            ParamConfig('rotation', 'int', 'Rotation', -180, 180, 5),
        ],
    ),
    # --- Transform ---
    NodeDefinition(
        NodeType.TRANSFORM_IMAGE, 'Transform Image', 'Scale, rotate and move; canvas grows to fit.',
        'Transform',
        default_params={'x': 0, 'y': 0, 'scale': 1.0, 'rotation': 0},
        param_config=[
            ParamConfig('x', 'int', 'Translate X', -2000, 2000, 1),
            ParamConfig('y', 'int', 'Translate Y', -2000, 2000, 1),
            ParamConfig('scale', 'float', 'Scale', 0.1, 5, 0.1),
            ParamConfig('rotation', 'int', 'Rotation', -180, 180, 5),
        ],
        **_image_io(),
    ),
    NodeDefinition(
        NodeType.IMAGE_BLEND, 'Image Blend', 'Blend two images using standard modes.', 'Transform',
        inputs=[SocketDef('base', 'Base (Bottom)', SocketKind.IMAGE), SocketDef('layer', 'Layer (Top)', SocketKind.IMAGE)],
        outputs=[SocketDef('image', 'Result', SocketKind.IMAGE)],
        default_params={'mode': 'normal', 'opacity': 1, 'x': 0, 'y': 0},
        param_config=[
            ParamConfig('mode', 'select', 'Blend Mode', options=list(BLEND_MODES)),
            ParamConfig('opacity', 'float', 'Opacity', 0, 1, 0.05),
            ParamConfig('x', 'int', 'Layer X', -2000, 2000, 10),
            ParamConfig('y', 'int', 'Layer Y', -2000, 2000, 10),
        ],
    ),
    NodeDefinition(
        NodeType.CROP, 'Crop', 'Crop the image to a rectangle.', 'Transform',
        default_params={'x': 0, 'y': 0, 'width': 500, 'height': 500},
        param_config=[
            ParamConfig('x', 'int', 'X', 0, 12000, 1),
            ParamConfig('y', 'int', 'Y', 0, 12000, 1),
            ParamConfig('width', 'int', 'Width', 1, 12000, 1),
            ParamConfig('height', 'int', 'Height', 1, 12000, 1),
        ],
        **_image_io(),
    ),
    # --- Filters ---
    NodeDefinition(
        NodeType.COLOR_CORRECTION, 'Color Correction', 'Adjust exposure, color and tone.', 'Filter',
        default_params={
            'brightness': 0, 'contrast': 1, 'temperature': 0, 'tint': 0,
            'saturation': 1, 'vibrance': 0, 'white': 255, 'black': 0,
        },
        param_config=[
            ParamConfig('brightness', 'float', 'Brightness', -100, 100, 1),
            ParamConfig('contrast', 'float', 'Contrast', 0, 3, 0.1),
            ParamConfig('temperature', 'float', 'Temperature', -100, 100, 1),
            ParamConfig('tint', 'float', 'Tint', -100, 100, 1),
            ParamConfig('saturation', 'float', 'Saturation', 0, 3, 0.1),
            ParamConfig('vibrance', 'float', 'Vibrance', -1, 1, 0.1),
            ParamConfig('white', 'int', 'White Point', 0, 255, 1),
            ParamConfig('black', 'int', 'Black Point', 0, 255, 1),
        ],
        **_image_io(),
    ),
    NodeDefinition(
        NodeType.BLUR, 'Blur', 'Gaussian or box blur.', 'Filter',
        default_params={'radius': 5, 'type': 'gaussian'},
        param_config=[
            ParamConfig('type', 'select', 'Type', options=['gaussian', 'box']),
            ParamConfig('radius', 'int', 'Radius', 0, 100, 1),
        ],
        **_image_io(),
    ),
    # --- Output ---
    NodeDefinition(
        NodeType.OUTPUT, 'Viewer', 'View the final result.', 'Output',
        inputs=[SocketDef('input', 'Result')],
        outputs=[SocketDef('value', 'Value')],
    ),
    NodeDefinition(
        NodeType.JSON_VIEWER, 'JSON Viewer', 'Inspect structured data.', 'Output',
        inputs=[SocketDef('data', 'Data')],
        outputs=[SocketDef('data', 'Data')],
    ),
]}


def get_definition(node_type: NodeType | str) -> NodeDefinition:
    """Look up the catalog entry for a node type.

    :param node_type: NodeType member or its string tag (e.g. ``'blur'``)
    :returns: The matching NodeDefinition
    :raises ValueError: If the tag is not a known node type
    """
    return NODE_CATALOG[NodeType(node_type)]
