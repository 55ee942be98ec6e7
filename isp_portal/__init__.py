"""ISP portal: CPE monitoring, router user management and WhatsApp alerts."""
