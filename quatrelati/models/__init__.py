# Import all models to ensure they're registered with SQLAlchemy
from quatrelati.models.usuarios import Usuario
from quatrelati.models.auth import RefreshToken, MagicLink
from quatrelati.models.clientes import Cliente
from quatrelati.models.produtos import Produto
from quatrelati.models.pedidos import Pedido, PedidoItem
from quatrelati.models.logs import ActivityLog, ErrorLog
from quatrelati.models.configuracoes import Configuracao
from quatrelati.models.contatos import ContatoSite
