from .node import Node as Node
from .notification import Notification as Notification
from .store_action import StoreAction as StoreAction
