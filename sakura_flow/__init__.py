"""1-D turbidity current (hyperpycnal flow) simulator."""
from sakura_flow.bed import BathymetryBed, BedArchitecture
from sakura_flow.config import FlowConstants, Flood, SimulationConfig, load_config
from sakura_flow.sediment import Sediment
from sakura_flow.simulation import RunState, SakuraResult, run_sakura

__version__ = "0.1.0"
