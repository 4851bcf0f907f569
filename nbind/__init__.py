"""Bind native (ctypes) classes and functions into an embedded interpreter."""

from .imports import NbindError
from .binder import Binder
from .console import installInput, platformGetline
from .dispatch import ArgsView, ArgumentTypeError, ReturnTypeError
from .marshal import NOMATCH, Ref, castArg, firstMatch
from .registry import Kind, NativeClass, RegistrationError, TypeRegistry
from .signature import SignatureError, parseSignature
from .stack import StackOverflowError, StackUnderflowError
from .value import DynTy, NativeObj, dynTy
from .vm import Vm, VmDestroyedError, createVm
