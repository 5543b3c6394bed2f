# corviz/__init__.py
from .errors import CorvizError, UnsupportedInputType, InvalidArgument, InvalidState
from .cortbl import CorTbl, MantelTbl, cor_tbl
from .network import CorNetwork, InputKind, as_cor_network, as_networkx, as_igraph, classify_input
from .layout import parallel_layout, combination_layout
