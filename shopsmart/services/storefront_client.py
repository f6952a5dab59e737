"""Python client for the ShopSmart storefront API."""
import logging
from typing import Any, BinaryIO, Dict, List, Optional

import requests

from shopsmart.services.auth_session import AuthSession
from shopsmart.services.cart_service import CartLine, CartSession, ProductSnapshot
from shopsmart.services.session_storage import KeyValueStorage, MemoryStorage

logger = logging.getLogger(__name__)

CART_STORAGE_KEY = 'cart'


def _error_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason or f"HTTP {response.status_code}"
    if not isinstance(body, dict):
        return response.text or f"HTTP {response.status_code}"
    return body.get('message') or body.get('error') or f"HTTP {response.status_code}"


class StorefrontClient:
    """
    Shopper-side client.

    Login state and the cart are kept locally in `storage` (a fresh
    MemoryStorage by default), the way a browser front end keeps them; the
    cart is priced locally from catalog data fetched through the API.
    """

    def __init__(self, base_url: str, storage: Optional[KeyValueStorage] = None,
                 http: Optional[requests.Session] = None, timeout: float = 10):
        self.base_url = base_url.rstrip('/')
        self.http = http or requests.Session()
        self.timeout = timeout
        storage = storage if storage is not None else MemoryStorage()
        self.auth = AuthSession(storage)
        self.cart = CartSession(storage, key=CART_STORAGE_KEY)

    def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        """
        Call the API and return its JSON body.

        Raises:
            requests.HTTPError: If the API returns an error status
        """
        headers = dict(kwargs.pop('headers', None) or {})
        headers.update(self.auth.auth_header())
        response = self.http.request(
            method, f"{self.base_url}{path}", headers=headers, timeout=self.timeout, **kwargs
        )
        try:
            response.raise_for_status()
        except requests.HTTPError:
            logger.error(f"[CLIENT] {method} {path} failed: {response.status_code} {_error_message(response)}")
            raise
        return response.json()

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    def _authenticate(self, path: str, payload: Dict) -> Dict:
        self.auth.clear_error()
        try:
            data = self._request('POST', path, json=payload)
        except requests.HTTPError as e:
            self.auth.fail(_error_message(e.response))
            raise
        self.auth.login(data['token'], data['user'])
        return data['user']

    def login(self, email: str, password: str) -> Dict:
        return self._authenticate('/api/auth/login', {'email': email, 'password': password})

    def register(self, email: str, password: str, first_name: Optional[str] = None,
                 last_name: Optional[str] = None) -> Dict:
        return self._authenticate('/api/auth/register', {
            'email': email,
            'password': password,
            'firstName': first_name,
            'lastName': last_name,
        })

    def logout(self) -> None:
        """Forget the token locally; the cart survives a logout."""
        try:
            self._request('POST', '/api/auth/logout')
        except requests.RequestException as e:
            logger.warning(f"[CLIENT] Logout request failed: {e}")
        self.auth.logout()

    def me(self) -> Dict:
        return self._request('GET', '/api/auth/me')['user']

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    def list_products(self, search: Optional[str] = None, on_sale: bool = False) -> List[Dict]:
        params = {}
        if search:
            params['q'] = search
        if on_sale:
            params['onSale'] = 'true'
        return self._request('GET', '/api/products', params=params)['products']

    def get_product(self, product_id: int) -> Dict:
        return self._request('GET', f'/api/products/{product_id}')['product']

    # ------------------------------------------------------------------
    # Cart (local)
    # ------------------------------------------------------------------

    def add_to_cart(self, product_id: int, quantity: int = 1) -> List[CartLine]:
        """Fetch current sale data for the product, then add it."""
        snapshot = ProductSnapshot.from_dict(self.get_product(product_id))
        return self.cart.add_to_cart(snapshot, quantity)

    def update_quantity(self, product_id: int, quantity: int,
                        is_sale_priced: Optional[bool] = None) -> List[CartLine]:
        return self.cart.update_quantity(product_id, quantity, is_sale_priced)

    def remove_from_cart(self, product_id: int) -> List[CartLine]:
        return self.cart.remove_from_cart(product_id)

    def clear_cart(self) -> List[CartLine]:
        return self.cart.clear_cart()

    # ------------------------------------------------------------------
    # Admin
    # ------------------------------------------------------------------

    def admin_list_products(self, **params) -> Dict:
        """Returns {'products': [...], 'pagination': {...}}."""
        return self._request('GET', '/api/admin/products', params=params)

    def admin_create_product(self, payload: Dict) -> Dict:
        return self._request('POST', '/api/admin/products', json=payload)['product']

    def admin_update_product(self, product_id: int, payload: Dict) -> Dict:
        return self._request('PUT', f'/api/admin/products/{product_id}', json=payload)

    def admin_delete_product(self, product_id: int) -> Dict:
        """Returns the API response including 'imageCleanup'."""
        return self._request('DELETE', f'/api/admin/products/{product_id}')

    def admin_replace_product_image(self, product_id: int, fileobj: BinaryIO, filename: str,
                                    mimetype: str) -> Dict:
        """Upload a new image for a product; returns the API response including 'replacement'."""
        return self._request(
            'PUT',
            f'/api/admin/products/{product_id}/image',
            files={'image': (filename, fileobj, mimetype)}
        )

    # ------------------------------------------------------------------

    def close(self) -> None:
        """End the session: drop the local cart and the HTTP connection pool."""
        self.cart.close()
        self.http.close()
