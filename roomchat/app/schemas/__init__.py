from .chat import ChatCreate, ChatEdit, ChatPatch, ChatRecord, MutationOut, QueryStatusOut
from .input_state import InputStateIn, InputStateOut
from .public_config import PublicConfigOut
