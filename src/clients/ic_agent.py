"""
Internet Computer 副本 Agent

负责与副本 HTTP 接口 (/api/v2) 的全部交互:
- 信任引导: GET /api/v2/status 获取根密钥（仅本地开发网络需要）
- update 调用: POST .../call 提交 CBOR 信封，随后轮询 .../read_state 直到请求进入终态
- 身份: 使用匿名身份，信封不携带 sender_pubkey / sender_sig

客户端层不设置总超时，等待终态期间仅受传输层超时约束。
"""

from __future__ import annotations

import asyncio
import secrets
import time
from collections.abc import Callable
from typing import Any

import cbor2
import httpx

from src.clients.http_client import build_http_client
from src.config import config
from src.core.certificate import (
    Certificate,
    CertificateError,
    LookupStatus,
    cbor_dumps,
    cbor_loads,
    check_root_key,
    verify_certificate,
)
from src.core.error_utils import extract_error_message
from src.core.exceptions import AgentCreationError, RemoteCallError, TrustBootstrapError
from src.core.logger import logger
from src.core.principal import Principal
from src.core.request_id import request_id as compute_request_id

# 证书校验钩子: (证书, 根密钥) -> None，校验失败时抛出 CertificateError。
# 未指定时使用 verify_certificate（签名长度、根密钥格式、证书时间）
CertificateVerifier = Callable[[Certificate, bytes | None], None]


class RequestStatus:
    RECEIVED = "received"
    PROCESSING = "processing"
    REPLIED = "replied"
    REJECTED = "rejected"
    DONE = "done"


def _decode_leb_nat(data: bytes) -> int:
    result = 0
    for shift, byte in enumerate(data):
        result |= (byte & 0x7F) << (7 * shift)
        if not byte & 0x80:
            break
    return result


class Agent:
    """
    副本连接句柄

    一个 Agent 对应一个副本地址和一个 HTTP 连接池。
    除 fetch_root_key() 写入根密钥外，Agent 在构建后不再修改自身状态，可被并发调用共享。
    """

    def __init__(
        self,
        url: str,
        http_client: httpx.AsyncClient,
        *,
        identity: Principal | None = None,
        verifier: CertificateVerifier | None = None,
        poll_initial_interval: float | None = None,
        poll_max_interval: float | None = None,
        poll_backoff_factor: float | None = None,
        ingress_expiry_seconds: int | None = None,
    ) -> None:
        self.url = url
        self._http = http_client
        self._identity = identity or Principal.anonymous()
        self._verifier = verifier or verify_certificate
        self._root_key: bytes | None = None
        self._poll_initial = (
            config.poll_initial_interval if poll_initial_interval is None else poll_initial_interval
        )
        self._poll_max = config.poll_max_interval if poll_max_interval is None else poll_max_interval
        self._poll_factor = (
            config.poll_backoff_factor if poll_backoff_factor is None else poll_backoff_factor
        )
        self._ingress_expiry = (
            config.ingress_expiry_seconds
            if ingress_expiry_seconds is None
            else ingress_expiry_seconds
        )

    @classmethod
    def create(
        cls,
        url: str,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        **kwargs: Any,
    ) -> Agent:
        """
        校验副本地址并创建 Agent

        Raises:
            AgentCreationError: 地址不合法或 HTTP 客户端无法创建
        """
        try:
            parsed = httpx.URL(url)
        except (httpx.InvalidURL, TypeError, ValueError) as e:
            raise AgentCreationError(str(url), str(e)) from e

        if parsed.scheme not in ("http", "https") or not parsed.host:
            raise AgentCreationError(url, "仅支持带主机名的 http/https 地址")

        try:
            http_client = build_http_client(url, transport=transport)
        except (httpx.HTTPError, ValueError, OSError) as e:
            raise AgentCreationError(url, str(e) or repr(e)) from e

        logger.info("Agent 已创建: {}", url)
        return cls(url, http_client, **kwargs)

    @property
    def root_key(self) -> bytes | None:
        return self._root_key

    def get_principal(self) -> Principal:
        """当前 Agent 的调用身份"""
        return self._identity

    async def aclose(self) -> None:
        await self._http.aclose()

    # ==================== 信任引导 ====================

    async def fetch_root_key(self) -> bytes:
        """
        获取副本根密钥（一次往返，不自动重试）

        Raises:
            TrustBootstrapError: 请求失败、响应中没有 root_key 或根密钥格式不正确
        """
        try:
            response = await self._http.get("/api/v2/status")
            response.raise_for_status()
            status = cbor_loads(response.content)
        except httpx.HTTPError as e:
            raise TrustBootstrapError(self.url, extract_error_message(e)) from e
        except (cbor2.CBORDecodeError, ValueError) as e:
            raise TrustBootstrapError(self.url, f"status 响应不是合法的 CBOR: {e}") from e

        root_key = status.get("root_key") if isinstance(status, dict) else None
        if not isinstance(root_key, (bytes, bytearray)) or not root_key:
            raise TrustBootstrapError(self.url, "status 响应缺少 root_key")
        try:
            check_root_key(bytes(root_key))
        except CertificateError as e:
            raise TrustBootstrapError(self.url, str(e)) from e

        self._root_key = bytes(root_key)
        logger.info("根密钥已获取: {} ({} 字节)", self.url, len(self._root_key))
        return self._root_key

    # ==================== update 调用 ====================

    def _expiry(self) -> int:
        return time.time_ns() + self._ingress_expiry * 1_000_000_000

    async def _post_envelope(
        self, canister_id: Principal, endpoint: str, content: dict[str, Any]
    ) -> httpx.Response:
        path = f"/api/v2/canister/{canister_id.to_text()}/{endpoint}"
        body = cbor_dumps({"content": content})
        return await self._http.post(path, content=body)

    async def update_call(self, canister_id: Principal, method_name: str, arg: bytes) -> bytes:
        """
        发起 update 调用并等待终态，返回 Candid 编码的 reply

        Raises:
            RemoteCallError: 传输失败、副本拒绝请求或请求被 canister 拒绝
        """
        content: dict[str, Any] = {
            "request_type": "call",
            "canister_id": canister_id.raw,
            "method_name": method_name,
            "arg": arg,
            "sender": self._identity.raw,
            "ingress_expiry": self._expiry(),
            "nonce": secrets.token_bytes(16),
        }
        request_id = compute_request_id(content)
        logger.debug("[{}] 提交 update 调用: {}.{}", request_id.hex()[:16], canister_id, method_name)

        try:
            response = await self._post_envelope(canister_id, "call", content)
        except httpx.HTTPError as e:
            raise RemoteCallError(
                f"调用 {method_name} 失败: {extract_error_message(e)}", method=method_name
            ) from e

        self._check_call_response(response, method_name)
        return await self._wait_for_reply(canister_id, request_id, method_name)

    def _check_call_response(self, response: httpx.Response, method_name: str) -> None:
        if response.status_code == 202:
            return

        if response.status_code == 200 and response.content:
            # 副本可能在受理阶段直接返回拒绝（non_replicated_rejection）
            try:
                body = cbor_loads(response.content)
            except (cbor2.CBORDecodeError, ValueError):
                body = None
            if isinstance(body, dict) and body.get("status") == "non_replicated_rejection":
                code = body.get("reject_code")
                message = body.get("reject_message", "")
                raise RemoteCallError(
                    f"调用 {method_name} 被副本拒绝 (code={code}): {message}",
                    method=method_name,
                    reject_code=code,
                )
            return

        if response.is_success:
            return

        raise RemoteCallError(
            f"调用 {method_name} 失败: HTTP {response.status_code}",
            method=method_name,
            upstream_response=response.text,
        )

    async def _read_request_status(
        self, canister_id: Principal, request_id: bytes, method_name: str
    ) -> Certificate:
        content = {
            "request_type": "read_state",
            "paths": [[b"request_status", request_id]],
            "sender": self._identity.raw,
            "ingress_expiry": self._expiry(),
        }
        try:
            response = await self._post_envelope(canister_id, "read_state", content)
            response.raise_for_status()
            body = cbor_loads(response.content)
            raw = body.get("certificate") if isinstance(body, dict) else None
            if not isinstance(raw, (bytes, bytearray)):
                raise CertificateError("read_state 响应缺少 certificate")
            certificate = Certificate.from_cbor(bytes(raw))
            self._verifier(certificate, self._root_key)
        except httpx.HTTPError as e:
            raise RemoteCallError(
                f"查询 {method_name} 状态失败: {extract_error_message(e)}", method=method_name
            ) from e
        except (CertificateError, cbor2.CBORDecodeError, ValueError) as e:
            raise RemoteCallError(f"{method_name} 的证书无效: {e}", method=method_name) from e
        return certificate

    async def _wait_for_reply(
        self, canister_id: Principal, request_id: bytes, method_name: str
    ) -> bytes:
        interval = self._poll_initial
        rid = request_id.hex()[:16]

        while True:
            certificate = await self._read_request_status(canister_id, request_id, method_name)
            status_result = certificate.lookup("request_status", request_id, "status")
            status = (
                status_result.value.decode("utf-8", errors="replace")
                if status_result.status == LookupStatus.FOUND and status_result.value is not None
                else None
            )

            if status == RequestStatus.REPLIED:
                reply = certificate.lookup("request_status", request_id, "reply")
                if reply.status != LookupStatus.FOUND or reply.value is None:
                    raise RemoteCallError(
                        f"{method_name} 已完成但证书中缺少 reply", method=method_name
                    )
                logger.debug("[{}] {} 已返回 ({} 字节)", rid, method_name, len(reply.value))
                return reply.value

            if status == RequestStatus.REJECTED:
                code_result = certificate.lookup("request_status", request_id, "reject_code")
                msg_result = certificate.lookup("request_status", request_id, "reject_message")
                code = _decode_leb_nat(code_result.value) if code_result.value else None
                message = (
                    msg_result.value.decode("utf-8", errors="replace") if msg_result.value else ""
                )
                raise RemoteCallError(
                    f"调用 {method_name} 被拒绝 (code={code}): {message}",
                    method=method_name,
                    reject_code=code,
                )

            if status == RequestStatus.DONE:
                raise RemoteCallError(
                    f"{method_name} 的结果已被副本清理，无法获取 reply", method=method_name
                )

            # received / processing / 尚未可见，继续等待
            logger.debug(
                "[{}] {} 状态={}，{:.2f}s 后重试", rid, method_name, status or "unknown", interval
            )
            await asyncio.sleep(interval)
            interval = min(interval * self._poll_factor, self._poll_max)


__all__ = ["Agent", "CertificateVerifier", "RequestStatus"]
