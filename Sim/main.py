from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
from typing import List, Dict, Any, Optional, Tuple
import math
from datetime import datetime

from formula_parser import parse_formula
from model_validation import collect_validation_issues
from sd_config import EngineConfiguration
from sd_errors import (
    ModelValidationException,
    NodeParameterOutOfRangeException,
    ParseException,
)
from sd_model import Model
from sd_simulation import ModelExecution

config = EngineConfiguration.from_env()

app = FastAPI(title="System Dynamics API", version="1.0.0")

# Enable CORS for the diagram editor frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

ELEMENT_TYPES = ("level", "rate", "constant", "auxiliary", "source_sink")

# Pydantic models for API
class ElementData(BaseModel):
    id: int
    type: str  # 'level', 'rate', 'constant', 'auxiliary', 'source_sink'
    name: Optional[str] = None
    value: Optional[float] = None  # start value of levels, value of constants
    formula: Optional[str] = None  # rates and auxiliaries, e.g. "CN(1) * LN(2)"
    x: Optional[float] = None
    y: Optional[float] = None

class ConnectionData(BaseModel):
    id: int
    from_element_id: int
    to_element_id: int
    connection_type: str = "flow"  # 'flow' or 'dependency' (drawn only, formulas define dependencies)

class ModelData(BaseModel):
    name: Optional[str] = None
    elements: List[ElementData]
    connections: List[ConnectionData] = Field(default_factory=list)
    simulation_params: Dict[str, Any] = Field(default_factory=lambda: {"rounds": config.default_rounds})

class SimulationRequest(BaseModel):
    model: ModelData

class SimulationResult(BaseModel):
    time: List[float]
    levels: Dict[str, List[Optional[float]]]
    rates: Dict[str, List[Optional[float]]]
    auxiliaries: Dict[str, List[Optional[float]]]
    success: bool
    message: str

# In-memory storage for models, lost on restart
models_storage = {}


class ModelBuildError(Exception):
    """Model data from the client cannot be turned into a model"""

    def __init__(self, message: str, element_id: Optional[int] = None):
        self.element_id = element_id
        super().__init__(message)


@app.get("/")
async def root():
    return {"message": "System Dynamics API Server"}

@app.post("/api/simulate")
async def simulate_model(request: SimulationRequest) -> SimulationResult:
    """
    Build, validate and execute the provided model
    """
    model_data = request.model
    rounds = _get_rounds(model_data.simulation_params)

    try:
        model, node_ids = build_model(model_data)
    except ModelBuildError as e:
        raise HTTPException(status_code=400, detail=_error_detail(e, e.element_id))

    try:
        model.validate_model_and_set_unchangeable()
    except ModelValidationException as e:
        raise HTTPException(status_code=400,
                            detail=_error_detail(e, node_ids.get(getattr(e, 'node', None))))

    try:
        execution = ModelExecution(model, config)
        execution.run(rounds)
    except Exception as e:
        raise HTTPException(status_code=400, detail=_error_detail(e, None)) from e
    results = execution.results_as_lists()

    return SimulationResult(
        time=results["time"],
        levels=_finite_or_none(results["levels"]),
        rates=_finite_or_none(results["rates"]),
        auxiliaries=_finite_or_none(results["auxiliaries"]),
        success=True,
        message=f"Simulation of {rounds} rounds completed successfully"
    )

@app.post("/api/validate_model")
async def validate_model(model: ModelData):
    """
    Validate model structure and formulas, reporting every problem found
    """
    try:
        built_model, node_ids = build_model(model)
    except ModelBuildError as e:
        return {
            "valid": False,
            "errors": [str(e)],
            "warnings": [],
            "issues": [{"severity": "error", "message": str(e), "element_id": e.element_id}]
        }

    report = collect_validation_issues(built_model)
    issues = []
    for issue in report.issues:
        issue_data = issue.to_dict()
        issue_data["element_id"] = node_ids.get(issue.node) if issue.node is not None else None
        issues.append(issue_data)

    return {
        "valid": report.is_valid,
        "errors": [_describe_issue(issue) for issue in report.errors],
        "warnings": [_describe_issue(issue) for issue in report.warnings],
        "issues": issues
    }

@app.post("/api/save_model")
async def save_model(model: ModelData, model_name: str):
    """
    Save model to in-memory storage
    """
    model_id = f"{model_name}_{datetime.now().isoformat()}"
    models_storage[model_id] = model.model_dump()

    return {
        "model_id": model_id,
        "message": "Model saved successfully"
    }

@app.get("/api/models")
async def list_models():
    """
    List all saved models
    """
    return {
        "models": list(models_storage.keys())
    }

@app.get("/api/models/{model_id}")
async def load_model(model_id: str):
    """
    Load a specific model
    """
    if model_id not in models_storage:
        raise HTTPException(status_code=404, detail="Model not found")

    return models_storage[model_id]


def build_model(model_data: ModelData) -> Tuple[Model, Dict[Any, int]]:
    """
    Convert UI model data into a Model.

    Element ids double as the node ids of formulas: a rate formula
    "CN(3) * LN(1)" reads the constant with id 3 and the level with id 1.

    Returns the model and a {node: element id} table.
    """
    model = Model(model_data.name)
    elements = {}
    nodes = {}
    id_tables = {"auxiliary": {}, "constant": {}, "level": {}}

    # Process elements
    for element in model_data.elements:
        if element.id in elements:
            raise ModelBuildError(f"Duplicate element id {element.id}", element.id)
        if element.type not in ELEMENT_TYPES:
            raise ModelBuildError(f"Unknown element type '{element.type}'", element.id)
        if element.type != "source_sink" and not element.name:
            raise ModelBuildError(f"Element {element.id} has no name", element.id)

        try:
            if element.type == "level":
                node = model.create_level_node(element.name, element.value or 0.0)
            elif element.type == "constant":
                node = model.create_constant_node(element.name, element.value or 0.0)
            elif element.type == "rate":
                node = model.create_rate_node(element.name)
            elif element.type == "auxiliary":
                node = model.create_auxiliary_node(element.name)
            else:
                node = model.create_source_sink_node()
        except NodeParameterOutOfRangeException as e:
            raise ModelBuildError(f"Value of '{element.name}' must lie between "
                                  f"{e.get_min_value():g} and {e.get_max_value():g}", element.id) from e

        elements[element.id] = element
        nodes[element.id] = node
        if element.type in id_tables:
            id_tables[element.type][element.id] = node

    # Process flow connections
    for connection in model_data.connections:
        if connection.connection_type == "dependency":
            continue
        if connection.connection_type != "flow":
            raise ModelBuildError(f"Unknown connection type '{connection.connection_type}'")
        for element_id in (connection.from_element_id, connection.to_element_id):
            if element_id not in nodes:
                raise ModelBuildError(f"Connection {connection.id} refers to unknown element {element_id}",
                                      element_id)
        _add_flow(model, elements, nodes, connection)

    # Process formulas
    for element in model_data.elements:
        if element.type not in ("rate", "auxiliary") or not element.formula:
            continue
        try:
            formula = parse_formula(element.formula, id_tables["auxiliary"],
                                    id_tables["constant"], id_tables["level"])
        except ParseException as e:
            raise ModelBuildError(f"Formula of '{element.name}': {e}", element.id) from e
        model.set_formula(nodes[element.id], formula)

    return model, {node: element_id for element_id, node in nodes.items()}

def _add_flow(model: Model, elements: Dict[int, ElementData], nodes: Dict[int, Any],
              connection: ConnectionData):
    """Add one flow edge; the element types decide the direction"""
    from_type = elements[connection.from_element_id].type
    to_type = elements[connection.to_element_id].type
    from_node = nodes[connection.from_element_id]
    to_node = nodes[connection.to_element_id]

    if from_type == "level" and to_type == "rate":
        added = model.add_flow_from_level_node_to_rate_node(from_node, to_node)
    elif from_type == "rate" and to_type == "level":
        added = model.add_flow_from_rate_node_to_level_node(from_node, to_node)
    elif from_type == "source_sink" and to_type == "rate":
        added = model.add_flow_from_source_sink_node_to_rate_node(from_node, to_node)
    elif from_type == "rate" and to_type == "source_sink":
        added = model.add_flow_from_rate_node_to_source_sink_node(from_node, to_node)
    else:
        raise ModelBuildError(f"Connection {connection.id} must join a rate with a level "
                              f"or source/sink ({from_type} -> {to_type})", connection.from_element_id)

    if not added:
        rate_id = connection.to_element_id if to_type == "rate" else connection.from_element_id
        raise ModelBuildError(f"Rate '{elements[rate_id].name}' already has a flow "
                              f"{'source' if to_type == 'rate' else 'sink'}", rate_id)

def _get_rounds(simulation_params: Dict[str, Any]) -> int:
    rounds = simulation_params.get("rounds", config.default_rounds)
    if isinstance(rounds, bool) or not isinstance(rounds, int) or not 1 <= rounds <= config.max_rounds:
        raise HTTPException(status_code=400,
                            detail=f"'rounds' must be an integer between 1 and {config.max_rounds}")
    return rounds

def _error_detail(error: Exception, element_id: Optional[int]) -> Dict[str, Any]:
    return {"message": str(error), "error_type": type(error).__name__, "element_id": element_id}

def _describe_issue(issue) -> str:
    if issue.element_name:
        return f"{issue.message} ({issue.element_type} '{issue.element_name}')"
    if issue.element_type:
        return f"{issue.message} ({issue.element_type})"
    return issue.message

def _finite_or_none(series: Dict[str, List[float]]) -> Dict[str, List[Optional[float]]]:
    """JSON has no inf/nan; such values are sent as null"""
    return {label: [value if math.isfinite(value) else None for value in values]
            for label, values in series.items()}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
