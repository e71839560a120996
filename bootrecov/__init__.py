"""
bootrecov: grub menu entries for /boot backups
"""
